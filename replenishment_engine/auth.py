from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request, status

logger = logging.getLogger(__name__)


def require_user(request: Request, authorization: Optional[str] = Header(default=None)) -> str:
    """Accept `Authorization: Bearer <token>` for any configured API token."""
    tokens = request.app.state.config.api_tokens
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() == "bearer" and token:
        for known in tokens:
            if secrets.compare_digest(token.strip(), known):
                return known
    logger.warning("Rejected unauthenticated request to %s", request.url.path)
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
