#!/usr/bin/env python3
"""
Linear Agent CLI
Fetches tickets from Linear, saves them as Markdown and optionally generates
implementation plans with an Anthropic model.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
import structlog

from shared.config import AppConfig, ConfigError, load_env_file
from shared.schemas.ticket import Ticket
from services.agent import ui
from services.linear.client import LinearAPIError, LinearClient
from services.linear.enrich import enrich_ticket, enrich_tickets
from services.planner.generator import GenerationError, PlanGenerator
from services.planner.prompt import render_plan_document
from services.tickets.markdown import TicketDecodeError
from services.tickets.storage import TicketStore

logger = structlog.get_logger()

EXAMPLES = """\b
Examples:
  linear-agent --setup                                # Run initial setup
  linear-agent --user "John Doe"                      # Save John's tickets (no plans)
  linear-agent --user "John Doe" --plan               # Generate plans for John's tickets
  linear-agent -u "John Doe" -s "Open"                # Only analyze open tickets
  linear-agent -e ~/.linear-agent/.env                # Use a custom .env file
  linear-agent --ticket tickets/ENG-1-Fix.md --plan   # Plan from a saved ticket file
  linear-agent --ticket-id ENG-123                    # Fetch and save one ticket
"""


def configure_logging(verbose: bool):
    """DEBUG with --verbose (includes raw API responses), warnings otherwise"""
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


def load_config(env_file: Optional[Path], **overrides) -> AppConfig:
    loaded = load_env_file(env_file)
    if loaded is not None and env_file is None:
        print(f"Loaded configuration from {loaded}")
    return AppConfig.from_env(**overrides)


async def check_linear(client: LinearClient):
    print("\nTesting Linear API connection...")
    try:
        await client.test_connection()
    except LinearAPIError as e:
        raise LinearAPIError(
            "Linear API connection failed. Please check your API key and try again."
        ) from e
    print("✅ Linear API connection successful")


async def check_anthropic(generator: PlanGenerator):
    print("\nTesting Anthropic API connection...")
    try:
        await generator.test_connection()
    except GenerationError as e:
        raise GenerationError(
            "Anthropic API connection failed. Please check your API key and try again."
        ) from e
    print("✅ Anthropic API connection successful")


async def generate_plan(
    generator: PlanGenerator,
    store: TicketStore,
    ticket: Ticket,
    progress: str = "",
):
    print(f"\n{progress}Generating implementation plan for: {ticket.title}")
    plan = await generator.generate_implementation_plan(ticket)
    path = store.save_plan(ticket, render_plan_document(ticket, plan))
    print(f"✅ Implementation plan saved to {path}")


async def process_ticket_file(
    ticket_path: Path,
    store: TicketStore,
    plan: bool,
    env_file: Optional[Path],
    model: Optional[str],
):
    """Load a saved ticket document and optionally plan it"""
    if not plan:
        print("Note: Using --ticket without --plan will only display the ticket details")

    print(f"Loading ticket from {ticket_path}")
    ticket = store.load_ticket(ticket_path)
    ui.print_ticket_summary(ticket)

    if not plan:
        return

    config = load_config(env_file, model=model)
    async with PlanGenerator(config.require_anthropic_key(), model=config.anthropic_model) as generator:
        await check_anthropic(generator)
        await generate_plan(generator, store, ticket)


async def process_ticket_id(
    ticket_id: str,
    store: TicketStore,
    plan: bool,
    config: AppConfig,
):
    """Fetch one ticket by id, enrich and save it, optionally plan it"""
    generator = None
    if plan:
        generator = PlanGenerator(config.require_anthropic_key(), model=config.anthropic_model)

    try:
        async with LinearClient(config.require_linear_key()) as client:
            await check_linear(client)

            print(f"\nFetching ticket with ID: {ticket_id}...")
            ticket = await client.fetch_ticket_by_id(ticket_id)

            print("\nGathering additional information about the ticket...")
            enriched = await enrich_ticket(ticket, client, skip_labels=not plan)

        path = store.save_ticket(enriched)
        print(f"✅ Ticket information saved to {path}")

        if generator is not None:
            await check_anthropic(generator)
            await generate_plan(generator, store, enriched)
    finally:
        if generator is not None:
            await generator.close()


async def process_user_tickets(
    store: TicketStore,
    plan: bool,
    config: AppConfig,
):
    """Fetch a user's tickets, let them pick some, enrich and save each"""
    generator = None
    if plan:
        generator = PlanGenerator(config.require_anthropic_key(), model=config.anthropic_model)

    try:
        async with LinearClient(config.require_linear_key()) as client:
            await check_linear(client)
            if generator is not None:
                await check_anthropic(generator)

            print(f"\nFetching tickets assigned to {config.linear_agent_user}...")
            tickets = await client.fetch_user_tickets(
                config.linear_team_name,
                config.linear_agent_user,
                config.linear_agent_states,
            )

            if not tickets:
                print(f"\n⚠️ No tickets found for user '{config.linear_agent_user}'")
                print(
                    "Please check if the user exists in Linear and has tickets assigned "
                    f"in the states: {', '.join(config.linear_agent_states)}"
                )
                return

            ui.display_tickets(tickets)
            selected = [tickets[i] for i in ui.get_user_selection(tickets, plan)]
            if not selected:
                print("\nNo tickets selected. Exiting.")
                return

            if plan:
                print(f"\nSelected {len(selected)} tickets for implementation plan generation:")
            else:
                print(f"\nSelected {len(selected)} tickets for analysis:")
            for i, ticket in enumerate(selected, start=1):
                print(f"{i}. {ticket.title}")

            print("\nGathering additional information about selected tickets...")
            enriched_tickets = await enrich_tickets(selected, client, skip_labels=not plan)
            print(f"All {len(enriched_tickets)} tickets enriched")

        total = len(enriched_tickets)
        for i, ticket in enumerate(enriched_tickets, start=1):
            print(f"\n[{i}/{total}] Saving ticket information: {ticket.title}")
            path = store.save_ticket(ticket)
            print(f"✅ Ticket information saved to {path}")

            if generator is not None:
                await generate_plan(generator, store, ticket, progress=f"[{i}/{total}] ")

        print("\n✅ All ticket information saved successfully")
        print(f"Ticket information saved to the '{store.tickets_dir.resolve()}' directory")
        if generator is not None:
            print("\n✅ All implementation plans generated successfully")
            print(f"Implementation plans saved to the '{store.plans_dir.resolve()}' directory")
    finally:
        if generator is not None:
            await generator.close()


@click.command(epilog=EXAMPLES)
@click.option("--env", "-e", "env_file", type=click.Path(path_type=Path), default=None,
              help="Path to .env file with LINEAR_API_KEY, ANTHROPIC_API_KEY, LINEAR_TEAM_NAME, "
                   "LINEAR_AGENT_USER, LINEAR_AGENT_STATES, ANTHROPIC_MODEL")
@click.option("--user", "-u", default=None, help="Linear user to analyze tickets for (e.g. \"Jane Smith\")")
@click.option("--team", "-t", default=None, help="Linear team name (default: Engineering)")
@click.option("--states", "-s", default=None, help="Comma-separated ticket states, e.g. \"Open,In Progress\"")
@click.option("--model", "-m", default=None, help="Anthropic model for plan generation")
@click.option("--setup", is_flag=True, help="Run the interactive setup wizard")
@click.option("--output", "-o", "output_dir", type=click.Path(path_type=Path),
              default=Path("implementation_plans"), show_default=True,
              help="Directory for implementation plans")
@click.option("--tickets-dir", type=click.Path(path_type=Path), default=Path("tickets"),
              show_default=True, help="Directory for saved ticket files")
@click.option("--ticket", "ticket_file", type=click.Path(path_type=Path), default=None,
              help="Previously saved ticket Markdown file to process")
@click.option("--ticket-id", default=None, help="Linear ticket ID to fetch and save (e.g. ENG-123)")
@click.option("--plan", is_flag=True, help="Generate implementation plans")
@click.option("--verbose", is_flag=True, help="Show debug output, including API responses")
def main(env_file: Optional[Path], user: Optional[str], team: Optional[str],
         states: Optional[str], model: Optional[str], setup: bool, output_dir: Path,
         tickets_dir: Path, ticket_file: Optional[Path], ticket_id: Optional[str],
         plan: bool, verbose: bool):
    """Linear Agent - fetch Linear tickets and generate implementation plans."""
    configure_logging(verbose)
    print("🔍 Linear Agent: Interactive Implementation Plan Generator")

    store = TicketStore(tickets_dir=tickets_dir, plans_dir=output_dir)

    try:
        if ticket_file is not None:
            asyncio.run(process_ticket_file(ticket_file, store, plan, env_file, model))
        elif ticket_id is not None:
            config = load_config(env_file, user=user, team=team, states=states, model=model)
            asyncio.run(process_ticket_id(ticket_id, store, plan, config))
        else:
            if setup:
                config = ui.setup_wizard()
            else:
                config = load_config(env_file, user=user, team=team, states=states, model=model)
            asyncio.run(process_user_tickets(store, plan, config))
    except (ConfigError, LinearAPIError, GenerationError, TicketDecodeError, FileNotFoundError) as e:
        logger.debug("Command failed", error=str(e), cause=repr(e.__cause__))
        print(f"\n❌ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
