"""
Webhook endpoints for GitHub deliveries.
"""

import json
from typing import Any, Dict

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from verifier.api.dependencies import get_services
from verifier.container import Services
from verifier.models.api_response import WebhookAccepted
from verifier.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/github",
    response_model=WebhookAccepted,
    response_model_by_alias=True,
    status_code=status.HTTP_202_ACCEPTED,
)
async def handle_github_webhook(
    request: Request,
    services: Services = Depends(get_services),
    x_github_event: str = Header(None, alias="X-GitHub-Event"),
    x_github_delivery: str = Header(None, alias="X-GitHub-Delivery"),
    x_hub_signature: str = Header(None, alias="X-Hub-Signature-256"),
) -> WebhookAccepted:
    """
    Receive a GitHub webhook delivery.

    This endpoint:
    1. Validates the HMAC signature over the raw body
    2. Parses the JSON payload
    3. Stores the event through the ingestor
    4. Returns 202 immediately; verification happens in the background processor

    Raises:
        HTTPException: 401 on signature failure, 400 on a malformed body,
            500 if the secret is unset or the event cannot be stored
    """
    request_logger = logger.with_context(delivery_id=x_github_delivery)

    validator = services.signature_validator
    if not validator.configured:
        request_logger.error("Webhook secret is not configured; rejecting delivery")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    # Read raw payload for signature verification
    payload = await request.body()

    if not validator.validate(payload, x_hub_signature):
        request_logger.warning("Invalid webhook signature received")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        payload_json: Dict[str, Any] = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        request_logger.warning(f"Malformed webhook payload: {e}")
        raise HTTPException(status_code=400, detail="Malformed JSON payload")

    if not isinstance(payload_json, dict):
        request_logger.warning("Webhook payload is not a JSON object")
        raise HTTPException(status_code=400, detail="Malformed JSON payload")

    event_type = x_github_event or "unknown"

    try:
        await services.ingestor.ingest(event_type, payload_json, delivery_id=x_github_delivery)
    except Exception as e:
        request_logger.error(f"Error storing webhook event: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error processing webhook")

    return WebhookAccepted(delivery_id=x_github_delivery, event_type=event_type)
