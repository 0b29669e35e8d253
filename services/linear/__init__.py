"""
Linear Service
Fetches tickets from Linear and enriches them with related entities

Components:
- client.py: LinearClient for the Linear GraphQL API
- enrich.py: enrich_ticket fan-out over the TicketSource lookups
"""

from .client import LinearAPIError, LinearClient, LinearGraphQLError
from .enrich import TicketSource, enrich_ticket, enrich_tickets

__all__ = [
    "LinearClient",
    "LinearAPIError",
    "LinearGraphQLError",
    "TicketSource",
    "enrich_ticket",
    "enrich_tickets",
]
