"""
Ticket Markdown Format
Renders a Ticket as a Markdown document and parses that document back.

Document layout:

    # Ticket: <title>

    **Ticket ID:** <id>
    **State:** <state>
    **Priority:** <priority>
    **Estimate:** <estimate or "Not estimated">
    **URL:** <url>
    **Labels:** <comma-separated labels or "None">

    ## Description

    <description>

    ## Comments

    - <user> (<YYYY-MM-DD>): <body>

    ## Related Tickets

    - <title> (State: <state>)

    ## Child Tickets

    - <title> (State: <state>)

Empty lists render as "None". Timestamps other than comment dates, ids of
comments and related tickets, the assignee and the parent are not written, so
the decoder fills them with placeholders.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import structlog

from shared.schemas.ticket import Comment, RelatedTicket, Ticket

logger = structlog.get_logger()

TITLE_PREFIX = "# Ticket: "

ID_LABEL = "**Ticket ID:**"
STATE_LABEL = "**State:**"
PRIORITY_LABEL = "**Priority:**"
ESTIMATE_LABEL = "**Estimate:**"
URL_LABEL = "**URL:**"
LABELS_LABEL = "**Labels:**"

DESCRIPTION_HEADING = "## Description"
COMMENTS_HEADING = "## Comments"
RELATED_HEADING = "## Related Tickets"
CHILDREN_HEADING = "## Child Tickets"

NONE_TEXT = "None"
NOT_ESTIMATED = "Not estimated"
UNKNOWN_USER = "Unknown"
LABEL_SEPARATOR = ", "
STATE_MARKER = " (State: "
DATE_FORMAT = "%Y-%m-%d"

# Comment date used when the written date cannot be parsed
EPOCH_SENTINEL = datetime(2021, 1, 1, tzinfo=timezone.utc)


class TicketDecodeError(ValueError):
    """Raised when a document has no title line"""


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def format_estimate(estimate: Optional[float]) -> str:
    """3.0 -> "3", 2.5 -> "2.5", None -> "Not estimated" """
    if estimate is None:
        return NOT_ESTIMATED
    if float(estimate).is_integer():
        return str(int(estimate))
    return str(estimate)


def format_labels(labels: list[str]) -> str:
    return LABEL_SEPARATOR.join(labels) if labels else NONE_TEXT


def format_comment(comment: Comment) -> str:
    user = comment.user or UNKNOWN_USER
    return f"- {user} ({comment.created_at.strftime(DATE_FORMAT)}): {comment.body}"


def format_related(related: RelatedTicket) -> str:
    return f"- {related.title}{STATE_MARKER}{related.state})"


def _format_list(items: list, formatter) -> str:
    if not items:
        return NONE_TEXT
    return "\n".join(formatter(item) for item in items)


def encode_ticket(ticket: Ticket) -> str:
    """Render a ticket as a Markdown document"""
    return (
        f"{TITLE_PREFIX}{ticket.title}\n"
        "\n"
        f"{ID_LABEL} {ticket.id}\n"
        f"{STATE_LABEL} {ticket.state}\n"
        f"{PRIORITY_LABEL} {ticket.priority}\n"
        f"{ESTIMATE_LABEL} {format_estimate(ticket.estimate)}\n"
        f"{URL_LABEL} {ticket.url}\n"
        f"{LABELS_LABEL} {format_labels(ticket.labels)}\n"
        "\n"
        f"{DESCRIPTION_HEADING}\n\n{ticket.description}\n\n"
        f"{COMMENTS_HEADING}\n\n{_format_list(ticket.comments, format_comment)}\n\n"
        f"{RELATED_HEADING}\n\n{_format_list(ticket.related_tickets, format_related)}\n\n"
        f"{CHILDREN_HEADING}\n\n{_format_list(ticket.children, format_related)}\n\n"
    )


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

class DecodeState(str, Enum):
    """Parser position within the document"""
    HEADER = "header"
    METADATA = "metadata"
    DESCRIPTION = "description"
    COMMENTS = "comments"
    RELATED_OR_CHILDREN = "related_or_children"


# Checked with `in`, in this order
SECTION_HEADINGS = [
    (DESCRIPTION_HEADING, DecodeState.DESCRIPTION),
    (COMMENTS_HEADING, DecodeState.COMMENTS),
    (RELATED_HEADING, DecodeState.RELATED_OR_CHILDREN),
    (CHILDREN_HEADING, DecodeState.RELATED_OR_CHILDREN),
]


def parse_priority(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse_estimate(value: str) -> Optional[float]:
    if NOT_ESTIMATED in value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def parse_labels(value: str) -> list[str]:
    if not value or value == NONE_TEXT:
        return []
    return value.split(LABEL_SEPARATOR)


def parse_comment_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return EPOCH_SENTINEL


def is_comment_header(line: str) -> bool:
    return line.startswith("- ") and "(" in line and "): " in line


def parse_comment_header(line: str) -> Optional[tuple[str, str, str]]:
    """
    Split "- user (date): body" into (user, date, body).

    Returns None when the part before "): " has no " (" separator.
    """
    header, _, body = line.partition(": ")
    user, sep, date = header.removeprefix("- ").rpartition(" (")
    if not sep:
        return None
    return user, date.rstrip(")"), body


def parse_related_line(line: str) -> Optional[tuple[str, str]]:
    """Split "- title (State: state)" into (title, state)"""
    if not line.startswith("- ") or STATE_MARKER not in line:
        return None
    parts = line.removeprefix("- ").split(STATE_MARKER)
    if len(parts) != 2:
        return None
    return parts[0], parts[1].rstrip(")")


class _PendingComment:
    """Comment being accumulated across one or more lines"""

    def __init__(self, user: str, date: str, first_line: str):
        self.user = user
        self.date = date
        self.lines = [first_line]

    def build(self, index: int) -> Comment:
        return Comment(
            id=f"from_file_{index}",
            body="\n".join(self.lines).strip(),
            created_at=parse_comment_date(self.date),
            user=self.user,
        )


class TicketParser:
    """
    Single-pass, line-oriented parser for documents written by encode_ticket.

    Each line is classified in priority order:
    1. a metadata label, whatever the current state
    2. a section heading, which switches state and is otherwise dropped
    3. content, handled according to the current state

    Malformed content degrades to defaults; only an empty document is an error.
    """

    METADATA_HANDLERS = {
        ID_LABEL: "id",
        STATE_LABEL: "state",
        PRIORITY_LABEL: "priority",
        ESTIMATE_LABEL: "estimate",
        URL_LABEL: "url",
        LABELS_LABEL: "labels",
    }

    def __init__(self, now: Optional[datetime] = None):
        self.now = now
        self.state = DecodeState.HEADER
        self.title = ""
        self.fields: dict = {
            "id": "",
            "state": "",
            "priority": 0,
            "estimate": None,
            "url": "",
            "labels": [],
        }
        self.description_lines: list[str] = []
        self.comments: list[Comment] = []
        self.children: list[RelatedTicket] = []
        self.related_tickets: list[RelatedTicket] = []
        self._pending: Optional[_PendingComment] = None

    def parse(self, text: str) -> Ticket:
        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        if not lines:
            raise TicketDecodeError("Missing title line")

        for line in lines:
            self.feed(line.removesuffix("\r"))
        return self.finish()

    def feed(self, line: str):
        if self.state is DecodeState.HEADER:
            self.title = line.removeprefix(TITLE_PREFIX)
            self.state = DecodeState.METADATA
            return

        if self._take_metadata(line):
            return

        for heading, next_state in SECTION_HEADINGS:
            if heading in line:
                self._enter(next_state)
                return

        if self.state is DecodeState.DESCRIPTION:
            self.description_lines.append(line)
        elif self.state is DecodeState.COMMENTS:
            self._take_comment_line(line)
        elif self.state is DecodeState.RELATED_OR_CHILDREN:
            self._take_related_line(line)

    def _enter(self, state: DecodeState):
        if self.state is DecodeState.COMMENTS and state is not DecodeState.COMMENTS:
            self._finish_comment()
        self.state = state

    def _take_metadata(self, line: str) -> bool:
        for label, field in self.METADATA_HANDLERS.items():
            if not line.startswith(label):
                continue
            value = line.removeprefix(label).strip()
            if field == "priority":
                self.fields[field] = parse_priority(value)
            elif field == "estimate":
                self.fields[field] = parse_estimate(value)
            elif field == "labels":
                self.fields[field] = parse_labels(value)
            else:
                self.fields[field] = value
            return True
        return False

    def _take_comment_line(self, line: str):
        parsed = parse_comment_header(line) if is_comment_header(line) else None
        if parsed is not None:
            self._finish_comment()
            self._pending = _PendingComment(*parsed)
        elif self._pending is not None:
            # Continuation of a multi-line comment body
            self._pending.lines.append(line)

    def _finish_comment(self):
        if self._pending is not None:
            self.comments.append(self._pending.build(len(self.comments)))
            self._pending = None

    def _take_related_line(self, line: str):
        parsed = parse_related_line(line)
        if parsed is None:
            return
        title, state = parsed
        # Entries from both the related and child sections are collected as
        # children; related_tickets is never filled from a document.
        self.children.append(RelatedTicket(
            id=f"placeholder_{len(self.children)}",
            title=title,
            state=state,
        ))

    def _description(self) -> str:
        lines = self.description_lines
        # Only the single blank line the encoder writes on each side is framing
        if lines and not lines[0]:
            lines = lines[1:]
        if lines and not lines[-1]:
            lines = lines[:-1]
        return "\n".join(lines)

    def finish(self) -> Ticket:
        self._finish_comment()
        now = self.now or datetime.now(timezone.utc)
        return Ticket(
            title=self.title,
            description=self._description(),
            created_at=now,
            updated_at=now,
            assignee=None,
            comments=self.comments,
            parent=None,
            children=self.children,
            related_tickets=self.related_tickets,
            **self.fields,
        )


def decode_ticket(text: str, now: Optional[datetime] = None) -> Ticket:
    """
    Parse a document produced by encode_ticket back into a Ticket.

    Args:
        text: Markdown document
        now: Timestamp for created_at/updated_at (default: current UTC time)

    Raises:
        TicketDecodeError: if the document is empty
    """
    ticket = TicketParser(now=now).parse(text)
    logger.debug("Decoded ticket", ticket_id=ticket.id, comments=len(ticket.comments))
    return ticket
