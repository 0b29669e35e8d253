"""
Tickets Service
Markdown rendering/parsing of tickets and flat-file persistence

Components:
- markdown.py: encode_ticket / decode_ticket for the ticket document format
- storage.py: TicketStore for ticket and plan files
"""

from .markdown import TicketDecodeError, decode_ticket, encode_ticket
from .storage import TicketStore, ticket_filename

__all__ = [
    "encode_ticket",
    "decode_ticket",
    "TicketDecodeError",
    "TicketStore",
    "ticket_filename",
]
