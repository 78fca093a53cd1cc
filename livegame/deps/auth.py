"""
Dépendance d'authentification admin
===================================

Objectif
--------
Fournir une *dependency* FastAPI `admin_required` qui protège les routes d'écriture
du document (mise à jour joueur, reset, titre) via un **Bearer token**.

La politique d'identification (mot de passe, cookie de session du front) reste hors de ce
service : le front admin échange ses identifiants contre ce jeton de son côté.
Les routes de lecture et le flux SSE ne sont PAS protégés.

Pourquoi accepter le préflight CORS ?
-------------------------------------
Le navigateur envoie une requête **OPTIONS** sans header `Authorization`. On protège donc
chaque route réelle avec `Depends(admin_required)`, pas le router entier.

Comportement & codes retour
---------------------------
- 401 si aucun Bearer n'est fourni.
- 403 si Bearer fourni mais invalide.
- True sinon.
"""
from __future__ import annotations

import hmac
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from livegame.deps.context import get_context
from livegame.services.context import ServerContext

# Schéma Bearer (désactive l'erreur auto pour qu'on rende nos 401/403)
bearer = HTTPBearer(auto_error=False)


def admin_required(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    context: ServerContext = Depends(get_context),
):
    """Autorise si `Authorization: Bearer <settings.ADMIN_TOKEN>`."""
    if credentials and (credentials.scheme or "").lower() == "bearer":
        if hmac.compare_digest(credentials.credentials, context.settings.ADMIN_TOKEN):
            return True
        raise HTTPException(status_code=403, detail="Invalid token")

    raise HTTPException(status_code=401, detail="Admin authentication required")
