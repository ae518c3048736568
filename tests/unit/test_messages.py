"""Tests for review message rendering."""

import pytest

from plugin_publisher.integrations.discord import ButtonStyle
from plugin_publisher.publishing.diff import format_diff
from plugin_publisher.publishing.history import CommitHistory
from plugin_publisher.publishing.messages import (
    EMBED_DESCRIPTION_LIMIT,
    RequestSummary,
    build_failure,
    build_request_embed,
    button_id,
    parse_button_id,
    request_buttons,
)


def summary(history: CommitHistory, diff: str | None = None, updates: int = 0) -> RequestSummary:
    return RequestSummary(
        owner="alice",
        repo="plugins",
        plugin="Foo",
        target_commit="c4",
        updates=updates,
        history=history,
        diff=diff,
    )


class TestButtonIds:
    def test_round_trip(self):
        assert parse_button_id(button_id(12, "approve")) == (12, "approve")

    @pytest.mark.parametrize(
        "custom_id",
        [None, "", "publishRequest-12", "publishRequest-x-approve", "publishRequest-12-ship", "other-12-deny"],
    )
    def test_malformed(self, custom_id):
        assert parse_button_id(custom_id) is None

    def test_request_buttons(self):
        [row] = request_buttons(5)
        buttons = row["components"]
        assert [b["label"] for b in buttons] == ["Approve", "No CI", "Deny"]
        assert [b["style"] for b in buttons] == [ButtonStyle.SUCCESS, ButtonStyle.SECONDARY, ButtonStyle.DANGER]
        assert [b["custom_id"] for b in buttons] == [
            "publishRequest-5-approve",
            "publishRequest-5-noci",
            "publishRequest-5-deny",
        ]


class TestRequestEmbed:
    def test_new_repository(self):
        embed = build_request_embed(summary(CommitHistory(None, None)))

        assert embed["title"] == "alice/plugins -> Foo"
        assert embed["url"] == "https://github.com/alice/plugins"
        assert embed["author"]["name"] == "alice"
        assert "New repository" in embed["description"]
        assert "Last approved commit: None" in embed["description"]
        assert "Force push detected!" not in embed["description"]

    def test_compare_link_and_updates(self):
        embed = build_request_embed(summary(CommitHistory("c2", "c2"), updates=3))

        assert "https://github.com/alice/plugins/compare/c2...c4" in embed["description"]
        assert "Request updates: 3" in embed["description"]
        assert "Force push detected!" not in embed["description"]

    def test_force_push_flag(self):
        embed = build_request_embed(summary(CommitHistory("c3", "c2")))
        assert "Force push detected!" in embed["description"]

    def test_changes_section(self):
        embed = build_request_embed(summary(CommitHistory("c2", "c2"), diff="```diff\n+x\n```"))
        assert "❯ Changes\n```diff" in embed["description"]

    def test_no_changes_section_without_diff(self):
        embed = build_request_embed(summary(CommitHistory("c2", "c2")))
        assert "Changes" not in embed["description"]

    def test_diff_under_ceiling_that_overflows_description_is_dropped(self):
        diff = format_diff("diff --git a/x b/x\n" + "+line\n" * 650)
        assert len(diff) < 4000

        embed = build_request_embed(summary(CommitHistory("c3", "c2"), diff=diff, updates=12))

        assert len(embed["description"]) <= EMBED_DESCRIPTION_LIMIT
        assert "Changes" not in embed["description"]
        assert "Force push detected!" in embed["description"]

    def test_diff_that_fits_with_headers_is_kept(self):
        diff = format_diff("diff --git a/x b/x\n" + "+line\n" * 500)

        embed = build_request_embed(summary(CommitHistory("c2", "c2"), diff=diff))

        assert embed["description"].endswith(diff)
        assert len(embed["description"]) <= EMBED_DESCRIPTION_LIMIT


def test_build_failure_links_run():
    assert build_failure("https://github.test/runs/1") == ":red_circle: **Build failure**\n<https://github.test/runs/1>"
