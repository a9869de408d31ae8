"""
Health router - GET /health endpoint.

Liveness probe for the chat API. Reports which index and retrieval mode
the instance was configured with, without calling any upstream service.
"""

from fastapi import APIRouter, Depends

from app.core.config import Settings, get_settings
from app.core.telemetry import SERVICE_NAME

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)) -> dict:
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "index": settings.azure_search_index_name,
        "vectorSearch": settings.use_vector_search,
    }
