"""
Shared FastAPI dependencies.
"""

import hmac

from fastapi import Depends, Header, HTTPException, Request

from verifier.container import Services


def get_services(request: Request) -> Services:
    """Service container attached to the running application."""
    return request.app.state.services


async def verify_api_key(
    x_api_key: str = Header(None),
    services: Services = Depends(get_services),
) -> None:
    """
    Verify API key for admin endpoints.

    Args:
        x_api_key: API key from request header

    Raises:
        HTTPException: If API key is invalid or missing
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="API key required")

    expected_key = services.settings.effective_admin_api_key

    if not expected_key or not hmac.compare_digest(x_api_key.encode(), expected_key.encode()):
        raise HTTPException(status_code=401, detail="Invalid API key")
