"""Commit history reconciliation.

Compares the approved-commit ledger of a repository against the commits
currently present upstream. The newest approved commit that still exists
upstream is the "last shared commit"; when it differs from the newest
approved commit, the approved tip was rewritten away by a force push.
"""

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class CommitHistory:
    """Result of reconciling a ledger with upstream."""

    last_approved: str | None
    last_shared: str | None

    @property
    def is_new_repository(self) -> bool:
        return self.last_approved is None

    @property
    def force_pushed(self) -> bool:
        """True when the last approved commit is no longer reachable upstream."""
        if self.last_approved is None:
            return False
        return self.last_approved != self.last_shared


def last_shared_commit(approved: Sequence[str], upstream: Sequence[str]) -> str | None:
    """Return the most recent approved commit still present upstream.

    Both sequences are ordered most-recent-first. Returns None when they do
    not intersect, either because there is no ledger yet or because the
    shared point fell outside the upstream window.
    """
    present = set(upstream)
    for commit in approved:
        if commit in present:
            return commit
    return None


def reconcile(approved: Sequence[str] | None, upstream: Sequence[str]) -> CommitHistory:
    """Build the history summary shown on a review message.

    Args:
        approved: Ledger for the repository, or None if never approved
        upstream: Fresh commit window from the source host

    Returns:
        CommitHistory with last approved and last shared commits
    """
    if not approved:
        return CommitHistory(last_approved=None, last_shared=None)

    return CommitHistory(
        last_approved=approved[0],
        last_shared=last_shared_commit(approved, upstream),
    )
