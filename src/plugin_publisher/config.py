"""Service configuration loaded from the environment."""

import logging
import os

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_BANNED_PLUGINS = ["HelloWorld", "Template"]


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseModel):
    """Runtime settings for the publishing service."""

    # Discord
    discord_token: str = ""
    discord_public_key: str | None = None
    discord_channel_id: str = ""
    discord_server_id: str = ""
    discord_api_url: str = "https://discord.com/api/v10"
    allowed_roles: list[str] = Field(default_factory=list)

    # GitHub
    github_token: str = ""
    github_api_url: str = "https://api.github.com"
    github_webhook_secret: str | None = None
    github_webhook_algorithm: str = "sha256"
    build_repo: str = ""
    build_workflow: str = "publish.yml"
    build_ref: str = "main"
    build_log_step: str = "build/2_Echo_Inputs"

    # Storage
    redis_url: str = "redis://localhost:6379/0"
    build_slot_ttl: int = 3600

    # Behaviour
    commit_window: int = 100
    diff_max_chars: int = 4000
    banned_plugins: list[str] = Field(default_factory=lambda: list(DEFAULT_BANNED_PLUGINS))
    http_timeout: float = 10.0
    pending_message_timeout: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    @field_validator("allowed_roles")
    @classmethod
    def _roles_are_snowflakes(cls, roles: list[str]) -> list[str]:
        for role in roles:
            if not role.isdigit():
                raise ValueError(f"Failed to parse verify role id: {role!r}")
        return roles

    @field_validator("github_webhook_algorithm")
    @classmethod
    def _known_algorithm(cls, algorithm: str) -> str:
        if algorithm not in ("sha1", "sha256"):
            raise ValueError(f"Unsupported webhook signature algorithm: {algorithm}")
        return algorithm

    @property
    def build_repo_owner(self) -> str:
        return self.build_repo.partition("/")[0]

    @property
    def build_repo_name(self) -> str:
        return self.build_repo.partition("/")[2]

    def message_link(self, message_id: str) -> str:
        """Public link to a message in the publishing channel."""
        return f"https://discord.com/channels/{self.discord_server_id}/{self.discord_channel_id}/{message_id}"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        values: dict = {
            "discord_token": os.getenv("DISCORD_TOKEN", ""),
            "discord_public_key": os.getenv("DISCORD_PUBLIC_KEY") or None,
            "discord_channel_id": os.getenv("DISCORD_PUBLISHING_CHANNEL_ID", ""),
            "discord_server_id": os.getenv("DISCORD_SERVER_ID", ""),
            "allowed_roles": _split(os.getenv("PLUGIN_PUBLISH_REQUESTS_ALLOWED_VERIFY_ROLES")),
            "github_token": os.getenv("GITHUB_TOKEN", ""),
            "github_webhook_secret": os.getenv("GITHUB_WEBHOOK_SECRET") or None,
            "github_webhook_algorithm": os.getenv("GITHUB_WEBHOOK_ALGORITHM", "sha256"),
            "build_repo": os.getenv("PLUGIN_BUILD_REPO", ""),
            "redis_url": os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "log_format": os.getenv("LOG_FORMAT", "text"),
        }

        optional = {
            "build_workflow": "PLUGIN_BUILD_WORKFLOW",
            "build_ref": "PLUGIN_BUILD_REF",
            "build_log_step": "PLUGIN_BUILD_LOG_STEP",
            "commit_window": "COMMIT_WINDOW",
            "diff_max_chars": "DIFF_MAX_CHARS",
            "http_timeout": "HTTP_TIMEOUT",
            "build_slot_ttl": "BUILD_SLOT_TTL",
            "pending_message_timeout": "PENDING_MESSAGE_TIMEOUT",
        }
        for field_name, env_name in optional.items():
            value = os.getenv(env_name)
            if value:
                values[field_name] = value

        banned = os.getenv("BANNED_PLUGINS")
        if banned is not None:
            values["banned_plugins"] = _split(banned)

        return cls(**values)
