"""Rendering of publish review messages.

The review message is a Discord embed describing the request and its
commit history, plus a row of Approve / No CI / Deny buttons whose ids
encode the request id and the action.
"""

import re
from dataclasses import dataclass
from typing import Any

from ..integrations.discord import ButtonStyle, action_row, button
from .history import CommitHistory

GITHUB_URL = "https://github.com"

BUTTON_ID_PATTERN = re.compile(r"^publishRequest-(\d+)-(approve|deny|noci)$")

# Discord rejects embeds whose description is longer than this
EMBED_DESCRIPTION_LIMIT = 4096

AWAITING_APPROVAL = "Awaiting approval..."
BUILD_SUCCESS = ":green_circle: Build success"


def building(user: str) -> str:
    return f":yellow_circle: Building... (approved by {user})"


def build_failure(run_url: str) -> str:
    return f":red_circle: **Build failure**\n<{run_url}>"


def denied(user: str) -> str:
    return f":no_entry: Denied by {user}"


def skipped_ci(user: str) -> str:
    return f":white_check_mark: Approved without CI by {user}"


def button_id(request_id: int, action: str) -> str:
    return f"publishRequest-{request_id}-{action}"


def parse_button_id(custom_id: str | None) -> tuple[int, str] | None:
    """Decode ``publishRequest-<id>-<action>`` into (id, action)."""
    if not custom_id:
        return None
    match = BUTTON_ID_PATTERN.match(custom_id)
    if match is None:
        return None
    return int(match.group(1)), match.group(2)


def request_buttons(request_id: int) -> list[dict[str, Any]]:
    """Action row attached to a pending review message."""
    return [
        action_row(
            button(ButtonStyle.SUCCESS, "Approve", button_id(request_id, "approve")),
            button(ButtonStyle.SECONDARY, "No CI", button_id(request_id, "noci")),
            button(ButtonStyle.DANGER, "Deny", button_id(request_id, "deny")),
        )
    ]


@dataclass
class RequestSummary:
    """Everything shown on a review message."""

    owner: str
    repo: str
    plugin: str
    target_commit: str
    updates: int
    history: CommitHistory
    diff: str | None = None

    @property
    def repo_url(self) -> str:
        return f"{GITHUB_URL}/{self.owner}/{self.repo}"

    @property
    def compare_url(self) -> str | None:
        if self.history.last_shared is None:
            return None
        return f"{self.repo_url}/compare/{self.history.last_shared}...{self.target_commit}"


class RequestEmbedBuilder:
    """Build the embed for a publish review message."""

    def __init__(self, summary: RequestSummary) -> None:
        self.summary = summary
        self.sections: list[str] = []

    def _add_info(self) -> None:
        s = self.summary
        compare = f"[Github]({s.compare_url})" if s.compare_url else "New repository ✨"
        self.sections.append(
            "❯ Info\n"
            f"• Compare: {compare}\n"
            f"• Target commit: `{s.target_commit}` + previous (if any)\n"
            f"• Request updates: {s.updates}"
        )

    def _add_history(self) -> None:
        history = self.summary.history
        approved = f"`{history.last_approved}`" if history.last_approved else "None"
        lines = [
            "❯ History",
            f"• Last approved commit: {approved}",
            f"• Last shared commit: `{history.last_shared or 'N/A'}`",
        ]
        if history.force_pushed:
            lines.append("• Force push detected!")
        self.sections.append("\n".join(lines))

    def _add_changes(self) -> None:
        if not self.summary.diff:
            return
        section = f"❯ Changes\n{self.summary.diff}"
        if len(self._description([*self.sections, section])) > EMBED_DESCRIPTION_LIMIT:
            return
        self.sections.append(section)

    @staticmethod
    def _description(sections: list[str]) -> str:
        return "\n\n".join(sections)

    def build(self) -> dict[str, Any]:
        """Build the complete embed."""
        s = self.summary
        self._add_info()
        self._add_history()
        self._add_changes()

        return {
            "title": f"{s.owner}/{s.repo} -> {s.plugin}",
            "url": s.repo_url,
            "author": {
                "name": s.owner,
                "url": f"{GITHUB_URL}/{s.owner}",
                "icon_url": f"{GITHUB_URL}/{s.owner}.png?s=32",
            },
            "description": self._description(self.sections),
        }


def build_request_embed(summary: RequestSummary) -> dict[str, Any]:
    return RequestEmbedBuilder(summary).build()
