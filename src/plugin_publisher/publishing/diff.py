"""Render the changes between two commits for a review message."""

import logging
import re

import httpx

from ..integrations.github import GitHubClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 4000

_FILE_BOUNDARY = re.compile(r"^(?=diff --git )", re.MULTILINE)


def split_files(diff: str) -> list[str]:
    """Split a unified diff into one chunk per file."""
    return [chunk for chunk in _FILE_BOUNDARY.split(diff) if chunk.strip()]


def escape_fences(text: str) -> str:
    """Escape triple backticks so text can sit inside a fenced block."""
    return text.replace("```", "\\```")


def format_diff(diff: str) -> str:
    """Wrap every file chunk of a diff in a ``diff`` code fence."""
    return "\n".join(f"```diff\n{escape_fences(chunk)}```" for chunk in split_files(diff))


class DiffRenderer:
    """Fetches and formats diffs with a size ceiling."""

    def __init__(self, github: GitHubClient, max_chars: int = DEFAULT_MAX_CHARS) -> None:
        self.github = github
        self.max_chars = max_chars

    async def render(self, owner: str, repo: str, base: str | None, head: str) -> str | None:
        """Return the formatted diff, or None when it cannot be shown.

        Nothing is fetched for a new repository (no base). A diff over the
        size ceiling is dropped rather than truncated.
        """
        if base is None:
            return None

        try:
            diff = await self.github.get_compare_diff(owner, repo, base, head)
        except httpx.HTTPError as e:
            logger.warning(f"Failed to fetch diff {base}...{head} for {owner}/{repo}: {e}")
            return None

        formatted = format_diff(diff)
        if not formatted or len(formatted) > self.max_chars:
            logger.debug(f"Omitting diff for {owner}/{repo} ({len(formatted)} chars)")
            return None

        return formatted
