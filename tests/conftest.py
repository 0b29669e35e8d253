"""Shared fixtures; puts the project root on sys.path when not installed."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shared.schemas.ticket import Comment, RelatedTicket, Ticket  # noqa: E402


@pytest.fixture
def base_ticket() -> Ticket:
    """Ticket as returned by a fetch, relational fields still empty"""
    return Ticket(
        id="ENG-1",
        title="Fix bug",
        description="Login button does nothing on Safari.",
        priority=2,
        estimate=None,
        url="https://linear.app/acme/issue/ENG-1/fix-bug",
        state="Open",
        created_at=datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc),
        updated_at=datetime(2024, 1, 6, 12, 0, tzinfo=timezone.utc),
        assignee="Ann",
    )


@pytest.fixture
def full_ticket(base_ticket) -> Ticket:
    """Fully enriched ticket without related tickets or parent"""
    return base_ticket.model_copy(update={
        "estimate": 3.0,
        "labels": ["bug", "frontend"],
        "comments": [
            Comment(
                id="c1",
                body="Looks good",
                created_at=datetime(2024, 1, 5, 14, 0, tzinfo=timezone.utc),
                user="Ann",
            ),
            Comment(
                id="c2",
                body="Reproduced on iOS too",
                created_at=datetime(2024, 1, 6, 8, 15, tzinfo=timezone.utc),
                user=None,
            ),
        ],
        "children": [
            RelatedTicket(id="ENG-2", title="Add regression test", state="Todo", assignee="Bo"),
            RelatedTicket(id="ENG-3", title="Patch click handler", state="In Progress"),
        ],
    })
