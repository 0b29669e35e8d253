"""
Ticket File Storage
Persists tickets and implementation plans as flat Markdown files
"""

from pathlib import Path
from typing import Union

import structlog

from shared.schemas.ticket import Ticket

from .markdown import decode_ticket, encode_ticket

logger = structlog.get_logger()

DEFAULT_TICKETS_DIR = Path("tickets")
DEFAULT_PLANS_DIR = Path("implementation_plans")

# Longest title fragment used in a file name
MAX_TITLE_CHARS = 50


def safe_title(title: str) -> str:
    """Replace every non-alphanumeric character with an underscore"""
    return "".join(c if c.isalnum() else "_" for c in title)


def ticket_filename(ticket: Ticket) -> str:
    """File name for a ticket: <id>-<safe title, max 50 chars>.md"""
    return f"{ticket.id}-{safe_title(ticket.title)[:MAX_TITLE_CHARS]}.md"


class TicketStore:
    """Flat-file store for ticket documents and generated plans"""

    def __init__(
        self,
        tickets_dir: Union[str, Path] = DEFAULT_TICKETS_DIR,
        plans_dir: Union[str, Path] = DEFAULT_PLANS_DIR,
    ):
        self.tickets_dir = Path(tickets_dir)
        self.plans_dir = Path(plans_dir)

    def _write(self, directory: Path, filename: str, content: str) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / filename
        path.write_text(content, encoding="utf-8")
        return path.resolve()

    def save_ticket(self, ticket: Ticket) -> Path:
        """
        Write a ticket document to the tickets directory.

        Returns:
            Absolute path of the written file
        """
        path = self._write(self.tickets_dir, ticket_filename(ticket), encode_ticket(ticket))
        logger.info("Saved ticket", ticket_id=ticket.id, file=str(path))
        return path

    def load_ticket(self, path: Union[str, Path]) -> Ticket:
        """Read and decode a previously saved ticket document"""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Ticket file not found: {path}")
        ticket = decode_ticket(path.read_text(encoding="utf-8"))
        logger.info("Loaded ticket", ticket_id=ticket.id, file=str(path))
        return ticket

    def save_plan(self, ticket: Ticket, document: str) -> Path:
        """Write a rendered implementation plan under the ticket's file name"""
        path = self._write(self.plans_dir, ticket_filename(ticket), document)
        logger.info("Saved implementation plan", ticket_id=ticket.id, file=str(path))
        return path
