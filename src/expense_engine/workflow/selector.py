"""Rule selection: one active rule governs each new expense."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from expense_engine.models import ApprovalRule

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _recency(rule: ApprovalRule) -> datetime:
    created = rule.created_at
    if created is None:
        return _EPOCH
    # SQLite hands back naive datetimes
    if created.tzinfo is None:
        return created.replace(tzinfo=timezone.utc)
    return created


def select_rule(rules: Sequence[ApprovalRule]) -> ApprovalRule | None:
    """Pick the governing rule out of a company's rules.

    Highest priority wins, most recently created breaks ties. Inactive rules
    are ignored. Rules never combine: everything but the winner is discarded.
    """
    active = [rule for rule in rules if rule.is_active]
    if not active:
        return None
    return max(active, key=lambda rule: (rule.priority, _recency(rule)))
