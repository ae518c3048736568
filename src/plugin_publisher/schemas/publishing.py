"""Pydantic models for the publishing API surface.

These schemas define the structure for:
- Publish submissions and their responses
- GitHub ``workflow_run`` webhook events
- Discord component interactions
"""

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Publish submission
# =============================================================================

class PublishPluginBody(BaseModel):
    """Body of a publish submission; owner and repo come from the path."""

    model_config = ConfigDict(populate_by_name=True)

    plugin: str = Field(..., min_length=1)
    target_commit: str = Field(..., alias="targetCommit", min_length=1)


class PublishPluginResponse(BaseModel):
    """Confirmation returned to the submitter."""

    message: str


class ErrorResponse(BaseModel):
    """Error body returned for rejected requests."""

    error: str


# =============================================================================
# GitHub workflow_run webhook
# =============================================================================

class WorkflowRun(BaseModel):
    """The ``workflow_run`` object of a GitHub webhook event."""

    id: int | None = None
    status: str
    conclusion: str | None = None
    html_url: str
    logs_url: str


class WorkflowRunEvent(BaseModel):
    """A GitHub ``workflow_run`` webhook event."""

    action: str
    workflow_run: WorkflowRun


# =============================================================================
# Discord interactions
# =============================================================================

class InteractionUser(BaseModel):
    id: str
    username: str | None = None


class InteractionMember(BaseModel):
    roles: list[str] = Field(default_factory=list)
    user: InteractionUser | None = None


class InteractionData(BaseModel):
    custom_id: str | None = None
    component_type: int | None = None


class Interaction(BaseModel):
    """An inbound Discord interaction (ping or component press)."""

    type: int
    data: InteractionData | None = None
    member: InteractionMember | None = None
