"""
Implementation Plan Prompt
Builds the generation prompt for a ticket and renders the saved plan document
"""

from shared.schemas.ticket import Ticket
from services.tickets.markdown import (
    DATE_FORMAT,
    ESTIMATE_LABEL,
    ID_LABEL,
    PRIORITY_LABEL,
    STATE_LABEL,
    UNKNOWN_USER,
    URL_LABEL,
    format_estimate,
    format_labels,
)

PLAN_INSTRUCTIONS = """You are a software engineering expert helping to create implementation plans for software development tickets.

I'm going to provide you with a ticket from our project management system. Based on the ticket details,
generate a detailed implementation plan. The plan should include:

1. An overview of the task
2. Technical requirements and considerations
3. Step-by-step implementation approach
4. Potential challenges and solutions
5. Testing strategy
6. Estimated effort (in hours or story points)

Here's the ticket information:

"""

PLAN_REQUEST = "Please provide a detailed implementation plan for this ticket."

PLAN_TITLE_PREFIX = "# Implementation Plan: "


def build_implementation_plan_prompt(ticket: Ticket) -> str:
    """Build the plan-generation prompt from a fully enriched ticket."""
    parts = [PLAN_INSTRUCTIONS]

    parts.append(f"Title: {ticket.title}\n")
    parts.append(f"Description: {ticket.description}\n")
    parts.append(f"Priority: {ticket.priority}\n")
    parts.append(f"Estimate: {format_estimate(ticket.estimate)}\n")
    parts.append(f"State: {ticket.state}\n")
    parts.append(f"Labels: {format_labels(ticket.labels)}\n")
    parts.append(f"Created: {ticket.created_at.strftime(DATE_FORMAT)}\n")
    parts.append(f"Updated: {ticket.updated_at.strftime(DATE_FORMAT)}\n\n")

    parts.append("Comments:\n")
    if not ticket.comments:
        parts.append("No comments\n")
    for comment in ticket.comments:
        user = comment.user or UNKNOWN_USER
        parts.append(f"- {user} ({comment.created_at.strftime(DATE_FORMAT)}): {comment.body}\n")
    parts.append("\n")

    if ticket.parent:
        parts.append(f"Parent Ticket: {ticket.parent.title} (State: {ticket.parent.state})\n\n")
    else:
        parts.append("No parent ticket\n\n")

    parts.append("Child Tickets:\n")
    if not ticket.children:
        parts.append("No child tickets\n")
    for child in ticket.children:
        parts.append(f"- {child.title} (State: {child.state})\n")
    parts.append("\n")

    parts.append("Related Tickets:\n")
    if not ticket.related_tickets:
        parts.append("No related tickets\n")
    for related in ticket.related_tickets:
        assignee = related.assignee or "Unassigned"
        parts.append(f"- {related.title} (State: {related.state}, Assignee: {assignee})\n")
    parts.append("\n")

    parts.append(PLAN_REQUEST)
    return "".join(parts)


def render_plan_document(ticket: Ticket, plan: str) -> str:
    """Markdown file content for a generated implementation plan"""
    return (
        f"{PLAN_TITLE_PREFIX}{ticket.title}\n\n"
        f"{ID_LABEL} {ticket.id}\n"
        f"{STATE_LABEL} {ticket.state}\n"
        f"{PRIORITY_LABEL} {ticket.priority}\n"
        f"{ESTIMATE_LABEL} {format_estimate(ticket.estimate)}\n"
        f"{URL_LABEL} {ticket.url}\n\n"
        "---\n\n"
        f"{plan}"
    )
