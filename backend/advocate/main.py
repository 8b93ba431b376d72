import logging
import sys

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from advocate.api.v1 import (
    appointments,
    auth,
    chat,
    documents,
    health,
    lawyers,
    notifications,
    reviews,
    websocket,
)
from advocate.core.config import settings
from advocate.core.exceptions import AppException, InternalServerException, ValidationException


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger("advocate")

app = FastAPI(title=settings.PROJECT_NAME)

logger.info("%s starting up (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# --------------------------------------------------
# Error rendering
# --------------------------------------------------

@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    error = ValidationException("Invalid request data", extra={"errors": errors})
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = InternalServerException()
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error.to_dict())


@app.get("/")
def root():
    return {"status": "ok"}

@app.get("/readyz")
def ready():
    return {"ready": True}

app.include_router(auth.router, prefix=settings.API_V1_STR, tags=["Auth"])
app.include_router(appointments.router, prefix=settings.API_V1_STR, tags=["Appointments"])
app.include_router(chat.router, prefix=settings.API_V1_STR, tags=["Chat"])
app.include_router(notifications.router, prefix=settings.API_V1_STR, tags=["Notifications"])
app.include_router(documents.router, prefix=settings.API_V1_STR, tags=["Documents"])
app.include_router(lawyers.router, prefix=settings.API_V1_STR, tags=["Lawyers"])
app.include_router(reviews.router, prefix=settings.API_V1_STR, tags=["Reviews"])
app.include_router(health.router, prefix=settings.API_V1_STR, tags=["Health"])
app.include_router(websocket.router, prefix=settings.API_V1_STR, tags=["Live"])
