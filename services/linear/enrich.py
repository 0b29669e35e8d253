"""
Ticket Enrichment
Fans out the relational lookups for a ticket and merges them into a new Ticket
"""

import asyncio
from typing import Any, Optional, Protocol

import structlog
from pydantic import BaseModel

from shared.schemas.ticket import Comment, RelatedTicket, Ticket

logger = structlog.get_logger()


class TicketSource(Protocol):
    """Remote lookups the enrichment step depends on, keyed by ticket id"""

    async def fetch_labels(self, ticket_id: str) -> list[str]: ...

    async def fetch_comments(self, ticket_id: str) -> list[Comment]: ...

    async def fetch_parent(self, ticket_id: str) -> Optional[RelatedTicket]: ...

    async def fetch_children(self, ticket_id: str) -> list[RelatedTicket]: ...

    async def fetch_related(self, ticket_id: str) -> list[RelatedTicket]: ...


def _dump(value: Any) -> Any:
    """Plain-data copy of a lookup result, sharing nothing with the source"""
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


async def enrich_ticket(
    ticket: Ticket,
    source: TicketSource,
    skip_labels: bool = False,
) -> Ticket:
    """
    Populate a ticket's labels, comments, parent, children and related tickets.

    The lookups are independent and run concurrently. If any of them fails the
    exception propagates unchanged, the remaining lookups are cancelled and no
    partially enriched ticket is produced. The input ticket is not modified.

    Args:
        ticket: Base ticket with a non-empty id
        source: Ticket source implementing the five lookups
        skip_labels: Keep the ticket's current labels instead of fetching them

    Returns:
        A new Ticket with the relational fields replaced
    """
    if not ticket.id:
        raise ValueError("Cannot enrich a ticket without an id")

    lookups = {
        "comments": source.fetch_comments(ticket.id),
        "parent": source.fetch_parent(ticket.id),
        "children": source.fetch_children(ticket.id),
        "related_tickets": source.fetch_related(ticket.id),
    }
    if not skip_labels:
        lookups["labels"] = source.fetch_labels(ticket.id)

    tasks = [asyncio.ensure_future(coro) for coro in lookups.values()]
    try:
        results = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        # Let cancelled lookups unwind before re-raising
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.warning("Enrichment failed", ticket_id=ticket.id)
        raise

    data = ticket.model_dump()
    data.update({field: _dump(value) for field, value in zip(lookups.keys(), results)})
    # Validation rebuilds every nested model and coerces None lists to []
    enriched = Ticket.model_validate(data)

    logger.debug(
        "Enriched ticket",
        ticket_id=ticket.id,
        labels=len(enriched.labels),
        comments=len(enriched.comments),
        children=len(enriched.children),
        related=len(enriched.related_tickets),
        has_parent=enriched.parent is not None,
    )
    return enriched


async def enrich_tickets(
    tickets: list[Ticket],
    source: TicketSource,
    skip_labels: bool = False,
) -> list[Ticket]:
    """Enrich tickets one after another; the first failure aborts the batch"""
    enriched = []
    for i, ticket in enumerate(tickets):
        logger.info("Enriching ticket", progress=f"{i + 1}/{len(tickets)}", ticket_id=ticket.id)
        enriched.append(await enrich_ticket(ticket, source, skip_labels=skip_labels))
    return enriched
