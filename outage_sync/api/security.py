"""Static API key check shared by every /api route."""

import secrets

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from outage_sync.config import settings

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def require_api_key(api_key: str | None = Security(api_key_header)) -> None:
    expected = settings.api_key.get_secret_value()
    if not api_key or not secrets.compare_digest(api_key, expected):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
