"""Linear GraphQL client for issue comments and priority updates.

This module provides an async wrapper around the Linear GraphQL API for:
- Creating comments on issues
- Updating issue priority
- Adding workspace labels to issues
- Assigning issues to members of the issue's team

Each agent role gets its own client with its own API key, so comments
and updates are attributed to the matching Linear bot account.

The client never retries: a failed mutation surfaces as LinearAPIError
and the caller decides what to do with it.

Source:
- src/copilot/agents/protocols.py (CommentPoster, PrioritySetter, LabelApplier,
  IssueAssigner)
- src/copilot/config.py (linear_api_url, *_api_key)
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx


logger = logging.getLogger(__name__)


COMMENT_CREATE_MUTATION = """
mutation CommentCreate($input: CommentCreateInput!) {
  commentCreate(input: $input) {
    success
    comment {
      id
    }
  }
}
"""

ISSUE_UPDATE_MUTATION = """
mutation IssueUpdate($id: String!, $input: IssueUpdateInput!) {
  issueUpdate(id: $id, input: $input) {
    success
    issue {
      id
      priority
    }
  }
}
"""

ISSUE_LABELS_QUERY = """
query IssueLabels($names: [String!]) {
  issueLabels(filter: { name: { in: $names } }) {
    nodes {
      id
      name
    }
  }
}
"""

ISSUE_ADD_LABEL_MUTATION = """
mutation IssueAddLabel($id: String!, $labelId: String!) {
  issueAddLabel(id: $id, labelId: $labelId) {
    success
  }
}
"""

ISSUE_TEAM_MEMBERS_QUERY = """
query IssueTeamMembers($id: String!) {
  issue(id: $id) {
    team {
      members {
        nodes {
          id
          name
        }
      }
    }
  }
}
"""


class LinearAPIError(Exception):
    """Raised when a Linear API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response, if any.
        errors: GraphQL error objects returned by Linear.
        response_body: Raw response body, truncated for logging.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        response_body: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.errors = list(errors or [])
        self.response_body = response_body
        super().__init__(message)


class LinearClient:
    """Async Linear GraphQL client.

    Implements the CommentPoster, PrioritySetter, LabelApplier and
    IssueAssigner capabilities used by the agent tools and the
    pipeline's failure notification.

    Attributes:
        api_key: Linear personal API key for one agent role.
        api_url: GraphQL endpoint (default: https://api.linear.app/graphql).
        timeout: Request timeout in seconds.

    Example:
        >>> client = LinearClient(api_key="lin_api_xxx")
        >>> async with client:
        ...     await client.post_comment("ISSUE-ID", "[Bug Bot] Hello!")
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.linear.app/graphql",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Linear client.

        Args:
            api_key: Linear API key.
            api_url: GraphQL endpoint URL.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used by tests.
        """
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazily create and return the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={
                    "Authorization": self.api_key,
                    "Content-Type": "application/json",
                    "User-Agent": "linear-triage-copilot",
                },
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LinearClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _execute(
        self,
        query: str,
        variables: Dict[str, Any],
        operation: str,
    ) -> Dict[str, Any]:
        """Execute a GraphQL operation and return its ``data`` object.

        Raises:
            LinearAPIError: On transport failure, non-2xx status, or a
                response carrying GraphQL errors.
        """
        try:
            response = await self.client.post(
                self.api_url,
                json={"query": query, "variables": variables},
            )
        except httpx.RequestError as e:
            logger.error(
                "Linear API request failed",
                extra={"operation": operation, "error": str(e)},
            )
            raise LinearAPIError(f"Linear API request failed: {e}") from e

        if response.status_code >= 400:
            error_body = response.text
            logger.error(
                "Linear API error",
                extra={
                    "operation": operation,
                    "status_code": response.status_code,
                    "response_body": error_body[:500],
                },
            )
            raise LinearAPIError(
                f"Linear API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body[:500],
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise LinearAPIError(
                "Linear API returned a non-JSON response",
                status_code=response.status_code,
                response_body=response.text[:500],
            ) from e

        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            first = errors[0]
            if isinstance(first, dict):
                first = first.get("message", "unknown error")
            logger.error(
                "Linear GraphQL error",
                extra={"operation": operation, "errors": errors},
            )
            raise LinearAPIError(
                f"Linear GraphQL error: {first}",
                status_code=response.status_code,
                errors=errors,
            )

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise LinearAPIError(
                "Linear API response has no data",
                status_code=response.status_code,
            )
        return data

    async def create_comment(self, issue_id: str, body: str) -> Dict[str, Any]:
        """Create a comment on an issue.

        Args:
            issue_id: Linear issue ID.
            body: Comment body in markdown format.

        Returns:
            The ``commentCreate`` payload from Linear.

        Raises:
            LinearAPIError: If the request fails or Linear reports failure.
        """
        logger.info(
            "Creating comment on issue",
            extra={"issue_id": issue_id, "body_length": len(body)},
        )

        data = await self._execute(
            COMMENT_CREATE_MUTATION,
            {"input": {"issueId": issue_id, "body": body}},
            operation="commentCreate",
        )
        result = data.get("commentCreate") or {}
        if not result.get("success"):
            raise LinearAPIError(f"Linear rejected comment on issue {issue_id}")

        logger.info(
            "Comment created successfully",
            extra={
                "issue_id": issue_id,
                "comment_id": (result.get("comment") or {}).get("id"),
            },
        )
        return result

    async def update_issue_priority(self, issue_id: str, priority: int) -> Dict[str, Any]:
        """Set the priority of an issue.

        Args:
            issue_id: Linear issue ID.
            priority: Linear priority, 1 (urgent) to 4 (low).

        Returns:
            The ``issueUpdate`` payload from Linear.

        Raises:
            LinearAPIError: If the request fails or Linear reports failure.
        """
        logger.info(
            "Updating issue priority",
            extra={"issue_id": issue_id, "priority": priority},
        )

        data = await self._execute(
            ISSUE_UPDATE_MUTATION,
            {"id": issue_id, "input": {"priority": priority}},
            operation="issueUpdate",
        )
        result = data.get("issueUpdate") or {}
        if not result.get("success"):
            raise LinearAPIError(f"Linear rejected priority update on issue {issue_id}")
        return result

    async def post_comment(self, issue_id: str, body: str) -> None:
        await self.create_comment(issue_id, body)

    async def set_priority(self, issue_id: str, priority: int) -> None:
        await self.update_issue_priority(issue_id, priority)

    async def add_labels(self, issue_id: str, names: Sequence[str]) -> List[str]:
        """Add existing workspace labels to an issue by name.

        Labels already on the issue are kept. Names that match no
        workspace label are skipped.

        Args:
            issue_id: Linear issue ID.
            names: Label names, applied in this order.

        Returns:
            The names that were applied.

        Raises:
            LinearAPIError: If a request fails or Linear reports failure.
        """
        wanted = list(dict.fromkeys(names))
        if not wanted:
            return []

        data = await self._execute(
            ISSUE_LABELS_QUERY,
            {"names": wanted},
            operation="issueLabels",
        )
        label_ids: Dict[str, str] = {}
        for node in (data.get("issueLabels") or {}).get("nodes") or []:
            label_ids.setdefault(node.get("name"), node.get("id"))

        applied = []
        for name in wanted:
            label_id = label_ids.get(name)
            if not label_id:
                logger.debug(
                    "Workspace has no label",
                    extra={"issue_id": issue_id, "label": name},
                )
                continue

            data = await self._execute(
                ISSUE_ADD_LABEL_MUTATION,
                {"id": issue_id, "labelId": label_id},
                operation="issueAddLabel",
            )
            if not (data.get("issueAddLabel") or {}).get("success"):
                raise LinearAPIError(f"Linear rejected label {name} on issue {issue_id}")
            applied.append(name)

        logger.info(
            "Labels added to issue",
            extra={"issue_id": issue_id, "labels": applied, "requested": wanted},
        )
        return applied

    async def assign_to_member(self, issue_id: str, name_fragment: str) -> Optional[str]:
        """Assign an issue to a member of its team.

        The assignee is the first member of the issue's team whose name
        contains ``name_fragment``.

        Returns:
            The assignee's name, or None when no member matches.

        Raises:
            LinearAPIError: If a request fails, the issue is not found,
                or Linear reports failure.
        """
        data = await self._execute(
            ISSUE_TEAM_MEMBERS_QUERY,
            {"id": issue_id},
            operation="issueTeamMembers",
        )
        issue = data.get("issue")
        if not isinstance(issue, dict):
            raise LinearAPIError(f"Issue {issue_id} not found")

        members = ((issue.get("team") or {}).get("members") or {}).get("nodes") or []
        member = next(
            (m for m in members if name_fragment in (m.get("name") or "")),
            None,
        )
        if member is None:
            logger.warning(
                "No team member matches assignment",
                extra={"issue_id": issue_id, "name_fragment": name_fragment},
            )
            return None

        data = await self._execute(
            ISSUE_UPDATE_MUTATION,
            {"id": issue_id, "input": {"assigneeId": member["id"]}},
            operation="issueUpdate",
        )
        if not (data.get("issueUpdate") or {}).get("success"):
            raise LinearAPIError(f"Linear rejected assignment of issue {issue_id}")

        logger.info(
            "Issue assigned",
            extra={"issue_id": issue_id, "assignee": member.get("name")},
        )
        return member.get("name")
