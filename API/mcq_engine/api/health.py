from fastapi import APIRouter, Depends

from mcq_engine.core.settings import settings
from mcq_engine.runtime.container import Services, get_services

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(services: Services = Depends(get_services)):
    return {
        "status": "ok",
        "service": "mcq-engine-api",
        "env": settings.app_env,
        "llm_provider": settings.llm_provider,
        "store": services.store.status(),
        "active_sessions": [s.to_dict() for s in services.sessions.active()],
        "circuit_breakers": services.breakers.status(),
    }
