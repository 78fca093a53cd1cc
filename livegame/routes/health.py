"""
Module routes/health.py
Rôle:
- Endpoint de santé (service OK + nombre de listeners actifs sur le bus).

Intégrations:
- settings: nom d'app.
- ChangeBus.listener_count: ≈ nombre de flux SSE ouverts (une session = un listener).
"""
from fastapi import APIRouter, Depends

from livegame.deps.context import get_context
from livegame.services.context import ServerContext

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health(context: ServerContext = Depends(get_context)):
    """Renvoie un OK minimal avec le nom de service configuré."""
    return {
        "ok": True,
        "service": context.settings.APP_NAME,
        "listeners": context.bus.listener_count,
    }
