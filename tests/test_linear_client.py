import json

import httpx
import pytest

from services.linear.client import LinearAPIError, LinearClient, LinearGraphQLError

ISSUE = {
    "id": "uuid-1",
    "identifier": "ENG-1",
    "title": "Fix bug",
    "description": None,
    "priority": 2,
    "estimate": 3.0,
    "url": "https://linear.app/acme/issue/ENG-1/fix-bug",
    "state": {"name": "Open"},
    "createdAt": "2024-01-01T09:30:00.000Z",
    "updatedAt": "2024-01-06T12:00:00.000Z",
    "assignee": {"name": "Ann"},
}


def related(identifier, title, state, assignee=None):
    return {
        "id": f"uuid-{identifier}",
        "identifier": identifier,
        "title": title,
        "state": {"name": state},
        "assignee": {"name": assignee} if assignee else None,
    }


def make_client(handler):
    """LinearClient whose requests are answered by handler(request) -> httpx.Response"""
    requests = []

    def record(request):
        requests.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return LinearClient("lin_api_test", client=http), requests


def data(payload):
    return lambda request: httpx.Response(200, json={"data": payload})


@pytest.mark.asyncio
async def test_request_shape():
    client, requests = make_client(data({"viewer": {"name": "Ann"}}))

    assert await client.test_connection() == "Ann"

    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.linear.app/graphql"
    assert request.headers["Authorization"] == "lin_api_test"
    assert request.headers["Content-Type"] == "application/json"
    body = json.loads(request.content)
    assert "viewer" in body["query"]
    assert body["variables"] == {}


@pytest.mark.asyncio
async def test_fetch_ticket_by_id():
    client, requests = make_client(data({"issue": ISSUE}))

    ticket = await client.fetch_ticket_by_id("ENG-1")

    assert json.loads(requests[0].content)["variables"] == {"id": "ENG-1"}
    assert ticket.id == "ENG-1"
    assert ticket.title == "Fix bug"
    assert ticket.description == ""
    assert ticket.priority == 2
    assert ticket.estimate == 3.0
    assert ticket.state == "Open"
    assert ticket.assignee == "Ann"
    assert ticket.created_at.year == 2024
    assert ticket.labels == []
    assert ticket.comments == []


@pytest.mark.asyncio
async def test_fetch_user_tickets_sets_assignee():
    issue = {key: value for key, value in ISSUE.items() if key != "assignee"}
    payload = {"users": {"nodes": [{
        "id": "user-1",
        "name": "Ann",
        "assignedIssues": {"nodes": [issue, dict(issue, identifier="ENG-2", priority=None)]},
    }]}}
    client, requests = make_client(data(payload))

    tickets = await client.fetch_user_tickets("Engineering", "Ann", ["Open", "In Progress"])

    assert json.loads(requests[0].content)["variables"] == {
        "teamName": "Engineering",
        "assigneeName": "Ann",
        "states": ["Open", "In Progress"],
    }
    assert [t.id for t in tickets] == ["ENG-1", "ENG-2"]
    assert all(t.assignee == "Ann" for t in tickets)
    assert tickets[1].priority == 0


@pytest.mark.asyncio
async def test_fetch_user_tickets_unknown_user():
    client, _ = make_client(data({"users": {"nodes": []}}))

    with pytest.raises(LinearAPIError, match="User 'Nobody' not found"):
        await client.fetch_user_tickets("Engineering", "Nobody", ["Open"])


@pytest.mark.asyncio
async def test_fetch_labels_and_comments():
    def handler(request):
        query = json.loads(request.content)["query"]
        if "labels" in query:
            return httpx.Response(200, json={"data": {"issue": {"labels": {"nodes": [
                {"name": "bug"}, {"name": "frontend"},
            ]}}}})
        return httpx.Response(200, json={"data": {"issue": {"comments": {"nodes": [
            {"id": "c1", "body": "Looks good", "createdAt": "2024-01-05T14:00:00Z", "user": {"name": "Ann"}},
            {"id": "c2", "body": "Automated", "createdAt": "2024-01-06T08:15:00Z", "user": None},
        ]}}}})

    client, requests = make_client(handler)

    assert await client.fetch_labels("ENG-1") == ["bug", "frontend"]
    comments = await client.fetch_comments("ENG-1")

    assert json.loads(requests[0].content)["variables"] == {"issueId": "ENG-1"}
    assert [(c.id, c.user, c.body) for c in comments] == [
        ("c1", "Ann", "Looks good"),
        ("c2", None, "Automated"),
    ]


@pytest.mark.asyncio
async def test_fetch_parent_absent():
    client, _ = make_client(data({"issue": {"parent": None}}))

    assert await client.fetch_parent("ENG-1") is None


@pytest.mark.asyncio
async def test_fetch_parent_children_related():
    def handler(request):
        query = json.loads(request.content)["query"]
        if "parent" in query:
            issue = {"parent": related("ENG-0", "Epic", "In Progress", "Cy")}
        elif "children" in query:
            issue = {"children": {"nodes": [related("ENG-2", "Add regression test", "Todo")]}}
        else:
            issue = {"relations": {"nodes": [
                {"id": "rel-1", "relatedIssue": related("ENG-9", "Safari audit", "Done", "Bo")},
            ]}}
        return httpx.Response(200, json={"data": {"issue": issue}})

    client, _ = make_client(handler)

    parent = await client.fetch_parent("ENG-1")
    children = await client.fetch_children("ENG-1")
    related_tickets = await client.fetch_related("ENG-1")

    assert (parent.id, parent.title, parent.state, parent.assignee) == ("ENG-0", "Epic", "In Progress", "Cy")
    assert [(c.id, c.assignee) for c in children] == [("ENG-2", None)]
    assert [(r.id, r.title, r.assignee) for r in related_tickets] == [("ENG-9", "Safari audit", "Bo")]


@pytest.mark.asyncio
async def test_graphql_errors():
    errors = [{"message": "Entity not found"}]
    client, _ = make_client(lambda request: httpx.Response(200, json={"errors": errors, "data": None}))

    with pytest.raises(LinearGraphQLError) as exc_info:
        await client.fetch_ticket_by_id("ENG-404")

    assert exc_info.value.errors == errors
    assert "Entity not found" in str(exc_info.value)


@pytest.mark.asyncio
async def test_http_error_status():
    client, _ = make_client(lambda request: httpx.Response(401, text="Unauthorized"))

    with pytest.raises(LinearAPIError, match="status 401: Unauthorized"):
        await client.test_connection()


@pytest.mark.asyncio
async def test_invalid_json():
    client, _ = make_client(lambda request: httpx.Response(200, text="<html>oops</html>"))

    with pytest.raises(LinearAPIError, match="parse"):
        await client.fetch_labels("ENG-1")


@pytest.mark.asyncio
async def test_transport_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = make_client(handler)

    with pytest.raises(LinearAPIError, match="Failed to send request"):
        await client.fetch_comments("ENG-1")


@pytest.mark.asyncio
async def test_unexpected_shape_is_an_error():
    client, _ = make_client(data({"issue": {"title": "missing fields"}}))

    with pytest.raises(LinearAPIError, match="deserialize"):
        await client.fetch_ticket_by_id("ENG-1")
