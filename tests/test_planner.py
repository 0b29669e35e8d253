import json

import httpx
import pytest

from services.planner.generator import GenerationError, PlanGenerator
from services.planner.prompt import (
    PLAN_REQUEST,
    build_implementation_plan_prompt,
    render_plan_document,
)
from shared.schemas.ticket import RelatedTicket


def make_generator(handler, **kwargs):
    requests = []

    def record(request):
        requests.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return PlanGenerator("sk-ant-test", client=http, **kwargs), requests


def reply(text, input_tokens=120, output_tokens=40):
    return lambda request: httpx.Response(200, json={
        "content": [{"type": "text", "text": text}],
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    })


def test_prompt_includes_ticket_details(full_ticket):
    ticket = full_ticket.model_copy(update={
        "parent": RelatedTicket(id="ENG-0", title="Login epic", state="In Progress"),
        "related_tickets": [
            RelatedTicket(id="ENG-9", title="Safari audit", state="Done", assignee="Bo"),
            RelatedTicket(id="ENG-10", title="Browser matrix", state="Todo"),
        ],
    })

    prompt = build_implementation_plan_prompt(ticket)

    assert "Title: Fix bug\n" in prompt
    assert "Description: Login button does nothing on Safari.\n" in prompt
    assert "Priority: 2\n" in prompt
    assert "Estimate: 3\n" in prompt
    assert "Labels: bug, frontend\n" in prompt
    assert "Created: 2024-01-01\n" in prompt
    assert "- Ann (2024-01-05): Looks good\n" in prompt
    assert "- Unknown (2024-01-06): Reproduced on iOS too\n" in prompt
    assert "Parent Ticket: Login epic (State: In Progress)\n" in prompt
    assert "- Add regression test (State: Todo)\n" in prompt
    assert "- Safari audit (State: Done, Assignee: Bo)\n" in prompt
    assert "- Browser matrix (State: Todo, Assignee: Unassigned)\n" in prompt
    assert prompt.endswith(PLAN_REQUEST)


def test_prompt_for_bare_ticket(base_ticket):
    prompt = build_implementation_plan_prompt(base_ticket)

    assert "Estimate: Not estimated\n" in prompt
    assert "Labels: None\n" in prompt
    assert "No comments\n" in prompt
    assert "No parent ticket\n" in prompt
    assert "No child tickets\n" in prompt
    assert "No related tickets\n" in prompt


def test_render_plan_document(full_ticket):
    document = render_plan_document(full_ticket, "## Overview\n\nDo the thing.")

    assert document.startswith("# Implementation Plan: Fix bug\n\n**Ticket ID:** ENG-1\n")
    assert "**Estimate:** 3\n" in document
    assert document.endswith("---\n\n## Overview\n\nDo the thing.")


@pytest.mark.asyncio
async def test_generate_text_request_and_metrics():
    generator, requests = make_generator(reply("Hello!"), model="claude-3-haiku-20240307")

    assert await generator.generate_text("Hi") == "Hello!"

    request = requests[0]
    assert str(request.url) == "https://api.anthropic.com/v1/messages"
    assert request.headers["x-api-key"] == "sk-ant-test"
    assert request.headers["anthropic-version"] == "2023-06-01"
    body = json.loads(request.content)
    assert body == {
        "model": "claude-3-haiku-20240307",
        "max_tokens": 4000,
        "messages": [{"role": "user", "content": "Hi"}],
    }
    assert generator.last_metrics.input_tokens == 120
    assert generator.last_metrics.output_tokens == 40
    assert generator.last_metrics.output_chars == len("Hello!")


@pytest.mark.asyncio
async def test_generate_implementation_plan(full_ticket):
    generator, requests = make_generator(reply("## Plan\n\n1. Fix the handler"))

    plan = await generator.generate_implementation_plan(full_ticket)

    assert plan == "## Plan\n\n1. Fix the handler"
    content = json.loads(requests[0].content)["messages"][0]["content"]
    assert content == build_implementation_plan_prompt(full_ticket)


@pytest.mark.asyncio
async def test_empty_content_is_an_error():
    generator, _ = make_generator(lambda request: httpx.Response(200, json={"content": []}))

    with pytest.raises(GenerationError, match="empty response"):
        await generator.generate_text("Hi")


@pytest.mark.asyncio
async def test_http_error_status():
    generator, _ = make_generator(
        lambda request: httpx.Response(529, json={"type": "error", "error": {"type": "overloaded_error"}})
    )

    with pytest.raises(GenerationError, match="status 529"):
        await generator.test_connection()


@pytest.mark.asyncio
async def test_invalid_json():
    generator, _ = make_generator(lambda request: httpx.Response(200, text="not json"))

    with pytest.raises(GenerationError, match="deserialize"):
        await generator.generate_text("Hi")
