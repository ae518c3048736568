from .publishing import (
    ErrorResponse,
    Interaction,
    InteractionData,
    InteractionMember,
    InteractionUser,
    PublishPluginBody,
    PublishPluginResponse,
    WorkflowRun,
    WorkflowRunEvent,
)

__all__ = [
    "ErrorResponse",
    "Interaction",
    "InteractionData",
    "InteractionMember",
    "InteractionUser",
    "PublishPluginBody",
    "PublishPluginResponse",
    "WorkflowRun",
    "WorkflowRunEvent",
]
