"""GitHub webhook handler for plugin build completions.

Receives ``workflow_run`` events from the build repository and hands
completed runs to the publishing service. Only mounted when a webhook
secret is configured.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from ..api.deps import get_service
from ..observability import record
from ..publishing.errors import AuthenticationFailure
from ..publishing.service import PublishingService
from ..publishing.signature import signature_header, verify_signature
from ..schemas.publishing import WorkflowRunEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/github")
async def github_webhook(
    request: Request,
    service: PublishingService = Depends(get_service),
) -> dict[str, Any]:
    """Handle GitHub webhook events.

    Supported events:
        - workflow_run (action: completed)

    Returns:
        Response dict with the processing status
    """
    payload_body = await request.body()

    settings = service.settings
    algorithm = settings.github_webhook_algorithm
    signature = request.headers.get(signature_header(algorithm))
    if not verify_signature(payload_body, settings.github_webhook_secret, signature, algorithm):
        record("webhooks_rejected")
        raise AuthenticationFailure("Invalid webhook signature")

    try:
        payload = json.loads(payload_body)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse webhook payload: {e}")
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    event_type = request.headers.get("X-GitHub-Event", "unknown")
    delivery_id = request.headers.get("X-GitHub-Delivery", "unknown")

    logger.info(f"Received GitHub webhook: event={event_type}, delivery={delivery_id}")

    if event_type != "workflow_run":
        logger.info(f"Ignoring event type: {event_type}")
        return {"status": "ignored", "event": event_type, "delivery_id": delivery_id}

    try:
        event = WorkflowRunEvent.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Malformed workflow_run payload: {e}")
        raise HTTPException(status_code=400, detail="Invalid workflow_run payload")

    result = await service.handle_workflow_run(event)
    return {**result, "delivery_id": delivery_id}
