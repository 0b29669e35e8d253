"""
Linear GraphQL Client
Fetches tickets and their related entities from the Linear API
"""

import json
from typing import Any, Optional

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from shared.schemas.linear import CommentRecord, IssueRecord, LabelRecord, RelatedRecord
from shared.schemas.ticket import Comment, RelatedTicket, Ticket

logger = structlog.get_logger()

LINEAR_API_URL = "https://api.linear.app/graphql"

# Characters of raw response body written to the debug log
DEBUG_RESPONSE_CHARS = 1000

VIEWER_QUERY = """
query {
  viewer {
    name
  }
}
"""

TICKET_BY_ID_QUERY = """
query TicketById($id: String!) {
  issue(id: $id) {
    id
    identifier
    title
    description
    priority
    estimate
    url
    state {
      name
    }
    createdAt
    updatedAt
    assignee {
      name
    }
  }
}
"""

USER_TICKETS_QUERY = """
query UserTickets($teamName: String!, $assigneeName: String!, $states: [String!]!) {
  users(filter: { name: { eq: $assigneeName } }) {
    nodes {
      id
      name
      assignedIssues(
        filter: {
          team: { name: { eq: $teamName } }
          state: { name: { in: $states } }
          assignee: { name: { eq: $assigneeName } }
        }
      ) {
        nodes {
          id
          identifier
          title
          description
          priority
          estimate
          url
          state {
            name
          }
          createdAt
          updatedAt
        }
      }
    }
  }
}
"""

LABELS_QUERY = """
query TicketLabels($issueId: String!) {
  issue(id: $issueId) {
    labels {
      nodes {
        name
      }
    }
  }
}
"""

COMMENTS_QUERY = """
query TicketComments($issueId: String!) {
  issue(id: $issueId) {
    comments {
      nodes {
        id
        body
        createdAt
        user {
          name
        }
      }
    }
  }
}
"""

# Shared selection for parent/children/related issues
_RELATED_FIELDS = """
        id
        identifier
        title
        state {
          name
        }
        assignee {
          name
        }
"""

PARENT_QUERY = """
query TicketParent($issueId: String!) {
  issue(id: $issueId) {
    parent {%s}
  }
}
""" % _RELATED_FIELDS

CHILDREN_QUERY = """
query TicketChildren($issueId: String!) {
  issue(id: $issueId) {
    children {
      nodes {%s}
    }
  }
}
""" % _RELATED_FIELDS

RELATED_QUERY = """
query RelatedIssues($issueId: String!) {
  issue(id: $issueId) {
    relations {
      nodes {
        id
        relatedIssue {%s}
      }
    }
  }
}
""" % _RELATED_FIELDS


class LinearAPIError(Exception):
    """Transport, HTTP or payload error from the Linear API"""


class LinearGraphQLError(LinearAPIError):
    """The response carried a GraphQL `errors` array"""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class LinearClient:
    """
    Async client for the Linear GraphQL API.

    Implements the ticket-source lookups used by the enrichment step
    (fetch_labels, fetch_comments, fetch_parent, fetch_children,
    fetch_related). Each lookup is a single request; errors are raised,
    never retried.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = LINEAR_API_URL,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create a persistent HTTP client for connection reuse."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout, connect=10.0))
        return self._client

    async def close(self):
        """Close the underlying HTTP client if we created it"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LinearClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def execute_query(self, query: str, variables: Optional[dict] = None) -> dict:
        """
        POST a GraphQL query and return its `data` object.

        Raises:
            LinearAPIError: on transport failure, non-2xx status or invalid JSON
            LinearGraphQLError: when the response contains `errors`
        """
        payload = {"query": query, "variables": variables or {}}
        headers = {
            "Authorization": self.api_key,
            "Content-Type": "application/json",
        }

        try:
            response = await self._get_client().post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise LinearAPIError(f"Failed to send request to Linear API: {e}") from e

        if response.status_code >= 400:
            raise LinearAPIError(
                f"Linear API request failed with status {response.status_code}: {response.text}"
            )

        text = response.text
        logger.debug("Linear API response", body=text[:DEBUG_RESPONSE_CHARS])

        try:
            body = json.loads(text)
        except json.JSONDecodeError as e:
            raise LinearAPIError(f"Failed to parse Linear API response as JSON: {e}") from e

        if not isinstance(body, dict):
            raise LinearAPIError("Linear API response is not a JSON object")
        if body.get("errors"):
            raise LinearGraphQLError(f"Linear API returned GraphQL errors: {text}", body["errors"])

        data = body.get("data")
        if not isinstance(data, dict):
            raise LinearAPIError("Linear API response has no data object")
        return data

    def _parse(self, model: type[BaseModel], value: Any, what: str):
        """Validate a payload fragment into a projection record"""
        try:
            return model.model_validate(value)
        except ValidationError as e:
            logger.debug("Deserialization error", what=what, error=str(e))
            raise LinearAPIError(f"Failed to deserialize Linear API response ({what}): {e}") from e

    def _issue(self, data: dict, ticket_id: str) -> dict:
        issue = data.get("issue")
        if not isinstance(issue, dict):
            raise LinearAPIError(f"Issue {ticket_id} not found in Linear API response")
        return issue

    def _nodes(self, container: Any, what: str) -> list:
        if not isinstance(container, dict) or not isinstance(container.get("nodes"), list):
            raise LinearAPIError(f"Failed to deserialize Linear API response ({what}): missing nodes")
        return container["nodes"]

    async def test_connection(self) -> str:
        """Check credentials; returns the authenticated user's name"""
        data = await self.execute_query(VIEWER_QUERY)
        viewer = data.get("viewer") or {}
        name = viewer.get("name")
        if not isinstance(name, str):
            raise LinearAPIError("Linear API response has no viewer name")
        logger.info("Connected to Linear", viewer=name)
        return name

    async def fetch_ticket_by_id(self, ticket_id: str) -> Ticket:
        """Fetch a single ticket by id or identifier (e.g. ENG-123)"""
        data = await self.execute_query(TICKET_BY_ID_QUERY, {"id": ticket_id})
        record = self._parse(IssueRecord, self._issue(data, ticket_id), "issue")
        return record.to_ticket()

    async def fetch_user_tickets(
        self,
        team_name: str,
        user_name: str,
        states: list[str],
    ) -> list[Ticket]:
        """
        Fetch tickets assigned to a user within a team, filtered by state names.

        Raises:
            LinearAPIError: if no user matches user_name
        """
        logger.info("Fetching user tickets", team=team_name, user=user_name, states=states)
        data = await self.execute_query(
            USER_TICKETS_QUERY,
            {"teamName": team_name, "assigneeName": user_name, "states": list(states)},
        )

        users = self._nodes(data.get("users"), "users")
        if not users:
            raise LinearAPIError(f"User '{user_name}' not found")

        issues = self._nodes((users[0] or {}).get("assignedIssues"), "assignedIssues")
        tickets = [
            self._parse(IssueRecord, issue, "assignedIssues").to_ticket(assignee=user_name)
            for issue in issues
        ]
        logger.info("Fetched user tickets", count=len(tickets))
        return tickets

    async def fetch_labels(self, ticket_id: str) -> list[str]:
        data = await self.execute_query(LABELS_QUERY, {"issueId": ticket_id})
        nodes = self._nodes(self._issue(data, ticket_id).get("labels"), "labels")
        return [self._parse(LabelRecord, node, "labels").name for node in nodes]

    async def fetch_comments(self, ticket_id: str) -> list[Comment]:
        data = await self.execute_query(COMMENTS_QUERY, {"issueId": ticket_id})
        nodes = self._nodes(self._issue(data, ticket_id).get("comments"), "comments")
        return [self._parse(CommentRecord, node, "comments").to_comment() for node in nodes]

    async def fetch_parent(self, ticket_id: str) -> Optional[RelatedTicket]:
        data = await self.execute_query(PARENT_QUERY, {"issueId": ticket_id})
        parent = self._issue(data, ticket_id).get("parent")
        if parent is None:
            return None
        return self._parse(RelatedRecord, parent, "parent").to_related()

    async def fetch_children(self, ticket_id: str) -> list[RelatedTicket]:
        data = await self.execute_query(CHILDREN_QUERY, {"issueId": ticket_id})
        nodes = self._nodes(self._issue(data, ticket_id).get("children"), "children")
        return [self._parse(RelatedRecord, node, "children").to_related() for node in nodes]

    async def fetch_related(self, ticket_id: str) -> list[RelatedTicket]:
        data = await self.execute_query(RELATED_QUERY, {"issueId": ticket_id})
        nodes = self._nodes(self._issue(data, ticket_id).get("relations"), "relations")
        related = []
        for relation in nodes:
            issue = (relation or {}).get("relatedIssue")
            related.append(self._parse(RelatedRecord, issue, "relations").to_related())
        return related
