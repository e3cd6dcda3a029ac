"""YouTrack REST Client: the IssueTracker implementation over httpx.

Invariants:
    - Every call is made with the caller's OAuth access token (Bearer)
    - Non-2xx responses raise TrackerAPIError; YouTrack's error_description is surfaced
    - Response bodies are validated into domain values before leaving this module
    - list_projects is sorted by name (case-insensitive)

Design Decisions:
    - One shared AsyncClient for all users: the token travels per request,
      connection pool is reused
    - Field selection via the `fields` query parameter: YouTrack returns only ids otherwise
"""

import logging
from urllib.parse import quote

import httpx

from backlog_bot.core.domain_types import (
    Choice, ChoiceField, Issue, IssueDraft, OptionSet,
)
from backlog_bot.core.errors import ErrorContext, TrackerAPIError
from backlog_bot.infrastructure.http_retry import ResilientHttpClient

logger = logging.getLogger(__name__)

ISSUE_FIELDS = "idReadable,summary,votes,voters(hasVote)"
PROJECT_FIELDS = "id,name,shortName"
PROJECT_CUSTOM_FIELD_FIELDS = "id,field(name),bundle(values(id,name))"
ENUM_ISSUE_FIELD_TYPE = "SingleEnumIssueCustomField"


class YouTrackClient(ResilientHttpClient):
    """IssueTracker backed by the YouTrack REST API (/api)."""

    service_name = "youtrack"

    @classmethod
    def from_url(
        cls, youtrack_url: str, timeout_seconds: float = 30.0, **retry_kwargs,
    ) -> "YouTrackClient":
        client = httpx.AsyncClient(
            base_url=youtrack_url.rstrip("/") + "/api",
            timeout=timeout_seconds,
            headers={"Accept": "application/json"},
        )
        return cls(client, **retry_kwargs)

    # ─── IssueTracker ────────────────────────────────────────────

    async def list_issues(
        self, token: str, query: str, top: int, skip: int,
    ) -> list[Issue]:
        response = await self.request(
            "GET", "/issues",
            params={"query": query, "$top": top, "$skip": skip, "fields": ISSUE_FIELDS},
            headers=_auth(token),
        )
        body = self.parse_json(response)
        if not isinstance(body, list):
            raise self.make_error("Unable to parse issues list", "bad_response")
        return [self._parse_issue(item) for item in body]

    async def vote_issue(self, token: str, issue_id: str, has_vote: bool) -> bool:
        """Flip the user's vote. Returns the new vote flag."""
        await self.request(
            "POST", f"/issues/{quote(issue_id, safe='')}/voters",
            json={"hasVote": not has_vote},
            headers=_auth(token),
            context=ErrorContext(debug_info={"issue_id": issue_id}),
        )
        return not has_vote

    async def list_projects(self, token: str) -> OptionSet:
        response = await self.request(
            "GET", "/admin/projects",
            params={"fields": PROJECT_FIELDS},
            headers=_auth(token),
        )
        body = self.parse_json(response)
        if not isinstance(body, list):
            raise self.make_error("Unable to parse project list", "bad_response")
        choices = [
            Choice(id=str(p["id"]), name=str(p.get("name") or p.get("shortName") or p["id"]))
            for p in body if isinstance(p, dict) and "id" in p
        ]
        choices.sort(key=lambda c: c.name.casefold())
        return OptionSet(
            field_id=ChoiceField.PROJECT.value,
            field_name=ChoiceField.PROJECT.value,
            options=tuple(choices),
        )

    async def get_field_bundle(
        self, token: str, project_id: str, field_name: str,
    ) -> OptionSet:
        """Values of one enum custom field attached to a project."""
        response = await self.request(
            "GET", f"/admin/projects/{quote(project_id, safe='')}/customFields",
            params={"fields": PROJECT_CUSTOM_FIELD_FIELDS},
            headers=_auth(token),
        )
        body = self.parse_json(response)
        if not isinstance(body, list):
            raise self.make_error("Unable to parse custom fields", "bad_response")
        for pcf in body:
            if not isinstance(pcf, dict):
                continue
            name = (pcf.get("field") or {}).get("name")
            if name != field_name:
                continue
            values = ((pcf.get("bundle") or {}).get("values")) or []
            return OptionSet(
                field_id=str(pcf.get("id", field_name)),
                field_name=field_name,
                options=tuple(
                    Choice(id=str(v["id"]), name=str(v["name"]))
                    for v in values if isinstance(v, dict) and "id" in v and "name" in v
                ),
            )
        raise self.make_error(
            f"Project {project_id} has no field {field_name}", "missing_field",
        )

    async def create_issue(self, token: str, draft: IssueDraft) -> str:
        """Create the issue and return its readable id (e.g. BOT-12)."""
        payload = {
            "summary": draft.summary,
            "description": draft.description,
            "project": {"id": draft.project_id},
            "customFields": [
                {
                    "name": fv.field_name,
                    "$type": ENUM_ISSUE_FIELD_TYPE,
                    "value": {"name": fv.value},
                }
                for fv in draft.custom_fields
            ],
        }
        response = await self.request(
            "POST", "/issues",
            params={"fields": "idReadable"},
            json=payload,
            headers=_auth(token),
        )
        body = self.parse_json(response)
        if not isinstance(body, dict) or "idReadable" not in body:
            raise self.make_error("Created issue has no id", "bad_response")
        logger.info(f"Issue created: {body['idReadable']}")
        return str(body["idReadable"])

    # ─── Error mapping ───────────────────────────────────────────

    def make_error(
        self,
        message: str,
        api_error_type: str,
        *,
        status_code: int | None = None,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ) -> TrackerAPIError:
        return TrackerAPIError(
            message, api_error_type,
            status_code=status_code, retry_after_ms=retry_after_ms, context=context,
        )

    def describe_error(self, response: httpx.Response) -> str:
        """YouTrack sends {"error": ..., "error_description": ...} on failure."""
        try:
            body = response.json()
        except ValueError:
            return f"YouTrack request failed ({response.status_code})"
        if isinstance(body, dict):
            return str(
                body.get("error_description") or body.get("error")
                or f"YouTrack request failed ({response.status_code})"
            )
        return f"YouTrack request failed ({response.status_code})"

    def _parse_issue(self, item) -> Issue:
        try:
            voters = item.get("voters") or {}
            return Issue(
                id_readable=str(item["idReadable"]),
                summary=str(item.get("summary") or ""),
                votes=int(item.get("votes") or 0),
                has_vote=bool(voters.get("hasVote", False)),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise self.make_error(f"Unable to parse issue: {e}", "bad_response")


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
