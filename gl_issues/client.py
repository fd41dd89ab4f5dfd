"""GitLab API client with pagination and retry support."""

from __future__ import annotations

import logging
import time
import urllib.parse
from typing import Any

import requests

from gl_issues.models import (
    API_V4,
    CREATE_RETRYABLE_STATUS_CODES,
    DEFAULT_MAX_RETRIES,
    PER_PAGE,
    RETRY_BACKOFF_FACTOR,
    RETRYABLE_STATUS_CODES,
    Issue,
    Project,
    ProjectMember,
)


class GitLabClient:
    """Thin wrapper around GitLab REST API v4 with pagination support and retry logic."""

    def __init__(
        self,
        base_url: str,
        token: str,
        dry_run: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        verify_ssl: bool = True,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_url = f"{self.base_url}{API_V4}"
        self.session = requests.Session()
        self.session.headers.update(
            {
                "PRIVATE-TOKEN": token,
                "Content-Type": "application/json",
            }
        )
        self.session.verify = verify_ssl
        self.dry_run = dry_run
        self.max_retries = max_retries
        self.logger = logging.getLogger("gl-issues")

    def _request(
        self,
        method: str,
        endpoint: str,
        retry_on: set[int] = RETRYABLE_STATUS_CODES,
        retry_connection: bool = True,
        **kwargs,
    ) -> requests.Response:
        """Make an HTTP request with retry logic for transient failures."""
        url = f"{self.api_url}{endpoint}"
        last_exception: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                self.logger.debug(
                    f"{method.upper()} {url} {kwargs.get('params', '')} {kwargs.get('json', '')} "
                    f"(attempt {attempt + 1}/{self.max_retries + 1})"
                )
                resp = self.session.request(method, url, **kwargs)

                if resp.status_code in retry_on and attempt < self.max_retries:
                    wait_time = self._calculate_backoff(resp, attempt)
                    self.logger.warning(f"Retryable error {resp.status_code}, waiting {wait_time:.1f}s before retry")
                    time.sleep(wait_time)
                    continue

                if resp.status_code >= 400:
                    self.logger.debug(f"API error {resp.status_code}: {resp.text[:500]}")
                resp.raise_for_status()
                return resp

            except requests.exceptions.ConnectionError as e:
                last_exception = e
                if retry_connection and attempt < self.max_retries:
                    wait_time = RETRY_BACKOFF_FACTOR * (2**attempt)
                    self.logger.warning(f"Connection error, retrying in {wait_time:.1f}s: {e}")
                    time.sleep(wait_time)
                    continue
                raise

        if last_exception:
            raise last_exception
        raise RuntimeError("Unexpected retry loop exit")

    def _calculate_backoff(self, resp: requests.Response, attempt: int) -> float:
        """Calculate backoff time, respecting Retry-After header for 429s."""
        if resp.status_code == 429:
            retry_after = resp.headers.get("Retry-After")
            if retry_after:
                try:
                    return float(retry_after)
                except ValueError:
                    pass  # Fall through to exponential backoff
        return RETRY_BACKOFF_FACTOR * (2**attempt)

    def get(self, endpoint: str, params: dict | None = None) -> Any:
        return self._request("GET", endpoint, params=params).json()

    def post(
        self,
        endpoint: str,
        data: dict | None = None,
        retry_on: set[int] = RETRYABLE_STATUS_CODES,
        retry_connection: bool = True,
    ) -> Any:
        resp = self._request("POST", endpoint, retry_on=retry_on, retry_connection=retry_connection, json=data)
        return resp.json()

    def paginate(self, endpoint: str, params: dict | None = None) -> list[dict]:
        """Fetch all pages of a paginated endpoint."""
        params = dict(params or {})
        params.setdefault("per_page", PER_PAGE)
        page = 1
        results = []
        while True:
            params["page"] = page
            resp = self._request("GET", endpoint, params=params)
            data = resp.json()
            if not data:
                break
            results.extend(data)
            total_pages = int(resp.headers.get("x-total-pages", page))
            if page >= total_pages:
                break
            page += 1
        return results

    # -- Project resolution --

    def resolve_project(
        self, project_id: int | None = None, name: str | None = None, path: str | None = None
    ) -> Project:
        """
        Resolve exactly one of id, name or path to a Project.

        A name is looked up through the project search API and must match a
        single project. A name containing '/' is treated as a path.
        """
        if project_id is not None:
            return self.get_project(project_id)
        if path is not None:
            return self.get_project_by_path(path)
        if name is not None:
            if "/" in name:
                return self.get_project_by_path(name)
            return self.find_project_by_name(name)
        raise SystemExit("ERROR: One of project id, name or path is required.")

    def get_project(self, project_id: int) -> Project:
        """Get project details by ID."""
        try:
            return Project.from_api(self.get(f"/projects/{project_id}"))
        except requests.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                raise SystemExit(f"ERROR: Project with id {project_id} not found.") from None
            raise

    def get_project_by_path(self, path: str) -> Project:
        """Get project details by full path or web URL."""
        project_path = self._extract_path_from_url(path)
        encoded_path = urllib.parse.quote(project_path, safe="")
        try:
            return Project.from_api(self.get(f"/projects/{encoded_path}"))
        except requests.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                raise SystemExit(f"ERROR: Project with path '{project_path}' not found.") from None
            raise

    def find_project_by_name(self, name: str) -> Project:
        """Find the single project visible to the user with the given name."""
        candidates = self.paginate("/projects", params={"search": name, "membership": True, "simple": True})
        wanted = name.strip().lower()
        matches = [
            p for p in candidates if p.get("name", "").lower() == wanted or p.get("path", "").lower() == wanted
        ]
        self.logger.debug(f"Project search '{name}' returned {len(candidates)} results, {len(matches)} exact matches")

        if not matches:
            raise SystemExit(f"ERROR: No project named '{name}' found.")
        if len(matches) > 1:
            paths = ", ".join(sorted(p["path_with_namespace"] for p in matches))
            raise SystemExit(
                f"ERROR: Project name '{name}' is ambiguous ({paths}). "
                f"Use --project-path with the full path of the project instead."
            )
        return Project.from_api(matches[0])

    def _extract_path_from_url(self, url: str) -> str:
        """Extract the namespace/project path from a GitLab URL."""
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme and parsed.netloc:
            # Full URL: https://gitlab.com/myorg/myteam/myproject
            path = parsed.path.strip("/")
            if "/-/" in path:
                path = path[: path.index("/-/")]
            if path.endswith("/-"):
                path = path[:-2]
            if path.endswith(".git"):
                path = path[:-4]
            return path
        else:
            # Bare path: myorg/myteam/myproject
            return url.strip("/")

    # -- Members and labels --

    def get_project_members(self, project_id: int) -> list[ProjectMember]:
        """All members of a project, including those inherited from groups."""
        return [
            ProjectMember(id=m["id"], username=m["username"], name=m.get("name", ""))
            for m in self.paginate(f"/projects/{project_id}/members/all")
        ]

    def get_project_labels(self, project_id: int) -> list[str]:
        return [label["name"] for label in self.paginate(f"/projects/{project_id}/labels")]

    def resolve_assignee(self, project_id: int, identifier: str) -> int:
        """Resolve a username, display name or user ID to the ID of a project member."""
        # If already numeric, return as-is
        try:
            return int(identifier)
        except ValueError:
            pass

        wanted = identifier.strip().lstrip("@").lower()
        members = self.get_project_members(project_id)
        for member in members:
            if member.username.lower() == wanted:
                return member.id
        for member in members:
            if member.name.lower() == wanted:
                return member.id
        raise ValueError(f"Assignee '{identifier}' is not a member of project {project_id}")

    # -- Issues --

    def create_issue(self, issue: Issue) -> dict:
        """Create an issue. Returns the created issue, or the payload in dry-run mode."""
        payload = issue.to_payload()
        if self.dry_run:
            self.logger.debug(f"Dry-run: would POST /projects/{issue.project_id}/issues {payload}")
            return payload
        # The request may have reached GitLab before the connection dropped
        return self.post(
            f"/projects/{issue.project_id}/issues",
            data=payload,
            retry_on=CREATE_RETRYABLE_STATUS_CODES,
            retry_connection=False,
        )
