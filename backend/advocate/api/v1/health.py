from fastapi import APIRouter

from advocate.core.config import settings
from advocate.realtime.rooms import manager

router = APIRouter()


@router.get("/status")
def health_check():
    return {
        "status": "OK",
        "service": f"{settings.PROJECT_NAME} Backend",
        "liveConnections": manager.get_total_connections(),
    }
