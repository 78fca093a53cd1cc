"""
Dépendances FastAPI d'accès au contexte serveur (bus + store).
"""
from fastapi import Depends, Request

from livegame.services.context import ServerContext
from livegame.services.state_store import StateStore


def get_context(request: Request) -> ServerContext:
    return request.app.state.context


def get_store(context: ServerContext = Depends(get_context)) -> StateStore:
    return context.store
