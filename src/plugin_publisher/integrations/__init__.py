"""Integration layer exports."""

from .discord import DiscordClient, InteractionVerifier
from .github import GitHubClient

__all__ = ["DiscordClient", "GitHubClient", "InteractionVerifier"]
