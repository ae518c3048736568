"""Publish submission endpoint.

Third parties (usually a plugin repository's own CI) call this to ask for a
commit of one of their plugins to be reviewed and published.
"""

import logging

from fastapi import APIRouter, Depends

from ..publishing.service import PublishingService
from ..schemas.publishing import ErrorResponse, PublishPluginBody, PublishPluginResponse
from .deps import get_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["publish"])


@router.post(
    "/publish/{owner}/{repo}",
    response_model=PublishPluginResponse,
    responses={400: {"model": ErrorResponse}},
)
async def publish_plugin(
    owner: str,
    repo: str,
    body: PublishPluginBody,
    service: PublishingService = Depends(get_service),
) -> PublishPluginResponse:
    """Submit a plugin commit for review.

    Creates a review message in the publishing channel, or updates the
    existing one when a request for the same plugin is still open.
    """
    logger.info(f"Publish request for {owner}/{repo} -> {body.plugin} @ {body.target_commit}")
    link = await service.submit(owner, repo, body.plugin, body.target_commit)
    return PublishPluginResponse(message=f"Success! {link}")
