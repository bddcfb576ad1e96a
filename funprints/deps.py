"""FastAPI dependency providers; tests swap them through ``app.dependency_overrides``."""
from __future__ import annotations
import secrets
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

from funprints.config import Settings, get_settings
from funprints.database import get_db
from funprints.notifications import Notifier
from funprints.orders import OrderService
from funprints.postal import PostalLookup

bearer = HTTPBearer(auto_error=False)


@lru_cache
def _notifier() -> Notifier:
    return Notifier(get_settings())


@lru_cache
def _postal_lookup() -> PostalLookup:
    settings = get_settings()
    return PostalLookup(settings.PINCODE_API_URL, timeout=settings.PINCODE_TIMEOUT)


def get_notifier() -> Notifier:
    return _notifier()


def get_postal_lookup() -> PostalLookup:
    return _postal_lookup()


def get_order_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> OrderService:
    return OrderService(db, notifier)


def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    settings: Settings = Depends(get_settings),
) -> None:
    if not settings.ADMIN_TOKEN:
        raise HTTPException(status_code=503, detail="Admin configuration not found")
    if credentials is None or not secrets.compare_digest(credentials.credentials, settings.ADMIN_TOKEN):
        raise HTTPException(status_code=401, detail="Invalid credentials", headers={"WWW-Authenticate": "Bearer"})
