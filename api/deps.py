"""
api/deps.py — Dependencies shared across routes.

Every project-scoped route authenticates with `Authorization: Bearer <api key>`.
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from leadvalidator.config import ProjectConfig
from leadvalidator.db.session import get_db
from leadvalidator.services.lead_service import InvalidApiKeyError, resolve_project

api_key_scheme = HTTPBearer(auto_error=False)


def get_project(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(api_key_scheme),
    db: Session = Depends(get_db),
) -> ProjectConfig:
    """Resolve the caller's API key to its project, or fail with 401."""
    api_key = credentials.credentials if credentials else None
    try:
        return resolve_project(db, api_key)
    except InvalidApiKeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )
