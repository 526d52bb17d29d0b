from fastapi import APIRouter

from opsdocs.core.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Проверка работоспособности сервиса"""
    return {"status": "ok", "service": settings.app_name}
