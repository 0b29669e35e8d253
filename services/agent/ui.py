"""
Interactive terminal helpers: ticket listing, ticket selection, setup wizard
"""

from pathlib import Path
from typing import Optional

import click

from shared.config import (
    DEFAULT_STATES,
    DEFAULT_TEAM_NAME,
    SUPPORTED_MODELS,
    AppConfig,
    default_config_path,
    parse_states,
)
from shared.schemas.ticket import Ticket
from services.tickets.markdown import NOT_ESTIMATED, format_labels

RULE_WIDTH = 80


def priority_label(priority: int) -> str:
    if priority in (3, 4):
        return "⚠️ High"
    if priority == 2:
        return "Medium"
    return "Low"


def format_ticket_listing(index: int, ticket: Ticket) -> str:
    """Three-line summary of a ticket, numbered from 1"""
    estimate = f"{ticket.estimate:g} points" if ticket.estimate is not None else NOT_ESTIMATED
    return (
        f"{index}. [{ticket.state}] {ticket.title}\n"
        f"   Priority: {priority_label(ticket.priority)} | Estimate: {estimate} | "
        f"Labels: {format_labels(ticket.labels)}\n"
        f"   URL: {ticket.url}"
    )


def display_tickets(tickets: list[Ticket]):
    print("\n" + "=" * RULE_WIDTH)
    print(f"Found {len(tickets)} tickets")
    print("=" * RULE_WIDTH)
    for i, ticket in enumerate(tickets, start=1):
        print(format_ticket_listing(i, ticket))
        print("-" * RULE_WIDTH)


def parse_selection(text: str, count: int) -> list[int]:
    """
    Parse a selection like "1, 3, 5-7" into sorted zero-based indices.

    Raises:
        ValueError: on malformed input or numbers outside 1..count
    """
    selected: set[int] = set()
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start_text, _, end_text = part.partition("-")
            start, end = int(start_text), int(end_text)
        else:
            start = end = int(part)
        if start > end or start < 1 or end > count:
            raise ValueError(f"Selection out of range: {part}")
        selected.update(range(start - 1, end))
    return sorted(selected)


def get_user_selection(tickets: list[Ticket], generate_plans: bool) -> list[int]:
    """Ask which tickets to process; an empty answer offers to take them all"""
    if generate_plans:
        print("\nSelect tickets to generate implementation plans for:")
    else:
        print("\nSelect tickets to analyze:")

    while True:
        answer = click.prompt(
            "Ticket numbers (e.g. 1,3,5-7)", default="", show_default=False
        )
        try:
            selection = parse_selection(answer, len(tickets))
            break
        except ValueError as e:
            print(f"❌ {e}")

    if not selection:
        if generate_plans:
            question = "No tickets selected. Do you want to generate plans for all tickets?"
        else:
            question = "No tickets selected. Do you want to process all tickets?"
        if click.confirm(question, default=False):
            return list(range(len(tickets)))

    return selection


def setup_wizard(save_path: Optional[Path] = None) -> AppConfig:
    """Prompt for every setting and optionally save them as a .env file"""
    print("\n📝 Linear Agent Setup")
    print("Let's set up your configuration.")

    config = AppConfig()
    config.linear_api_key = click.prompt("Linear API Key", hide_input=True)

    anthropic_key = click.prompt(
        "Anthropic API Key (leave empty to skip if not using plan generation)",
        default="",
        show_default=False,
        hide_input=True,
    )
    config.anthropic_api_key = anthropic_key.strip() or None

    config.linear_team_name = click.prompt("Linear Team Name", default=DEFAULT_TEAM_NAME)
    config.linear_agent_user = click.prompt("Linear User Name (whose tickets to analyze)")
    config.linear_agent_states = parse_states(click.prompt(
        "Linear States to analyze (comma-separated)",
        default=",".join(DEFAULT_STATES),
    ))

    for i, model in enumerate(SUPPORTED_MODELS, start=1):
        print(f"  {i}. {model}")
    choice = click.prompt(
        "Select Anthropic Model",
        type=click.IntRange(1, len(SUPPORTED_MODELS)),
        default=1,
    )
    config.anthropic_model = SUPPORTED_MODELS[choice - 1]

    if click.confirm("Save this configuration for future use?", default=True):
        path = Path(click.prompt(
            "Config file path",
            default=str(save_path or default_config_path()),
        ))
        saved = config.save(path)
        print(f"✅ Configuration saved to {saved}")

    return config


def print_ticket_summary(ticket: Ticket):
    print("Ticket loaded successfully:")
    print(f"Title: {ticket.title}")
    print(f"ID: {ticket.id}")
    print(f"State: {ticket.state}")
    print(f"Labels: {format_labels(ticket.labels)}")
