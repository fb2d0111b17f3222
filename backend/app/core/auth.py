import hmac

from fastapi import HTTPException, Request

from app.core.config import settings


def require_operator(request: Request) -> None:
    """Guard operator batch endpoints with the shared operator API key.

    When ``OPERATOR_API_KEY`` is not configured the check is disabled, which
    keeps local development and tests free of credentials.
    """
    if not settings.OPERATOR_API_KEY:
        return

    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Operator API key is required")

    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    raw_key = auth_header[7:]
    if not hmac.compare_digest(raw_key, settings.OPERATOR_API_KEY):
        raise HTTPException(status_code=401, detail="Invalid operator API key")
