"""Discord interactions endpoint.

Discord posts every button press on a review message here. Requests are
authenticated with the application's Ed25519 public key; the route is only
mounted when that key is configured.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from ..api.deps import get_service
from ..integrations.discord import InteractionType, InteractionVerifier, pong_response
from ..observability import record
from ..publishing.errors import AuthenticationFailure
from ..publishing.service import PublishingService
from ..schemas.publishing import Interaction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/discord", tags=["discord"])


@router.post("/interactions")
async def discord_interaction(
    request: Request,
    service: PublishingService = Depends(get_service),
) -> dict[str, Any]:
    body = await request.body()

    verifier: InteractionVerifier = request.app.state.interaction_verifier
    if not verifier.verify(
        body,
        request.headers.get("X-Signature-Ed25519"),
        request.headers.get("X-Signature-Timestamp"),
    ):
        record("webhooks_rejected")
        raise AuthenticationFailure("Invalid request signature")

    try:
        interaction = Interaction.model_validate_json(body)
    except ValidationError as e:
        logger.error(f"Malformed interaction payload: {e}")
        raise HTTPException(status_code=400, detail="Invalid interaction payload")

    if interaction.type == InteractionType.PING:
        return pong_response()

    if interaction.type == InteractionType.MESSAGE_COMPONENT:
        return await service.handle_interaction(interaction)

    logger.info(f"Ignoring interaction type {interaction.type}")
    raise HTTPException(status_code=400, detail=f"Unsupported interaction type {interaction.type}")
