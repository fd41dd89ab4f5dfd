"""Data models and constants for gl-issues."""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_GITLAB_URL = "https://gitlab.com"
API_V4 = "/api/v4"
PER_PAGE = 100

# Environment
GITLAB_URL_ENV = "GITLAB_URL"
GITLAB_TOKEN_ENV = "GITLAB_ACCESS_TOKEN"
LOG_LEVEL_ENV = "RUST_LOG"

# Retry configuration
DEFAULT_MAX_RETRIES = 3
RETRY_BACKOFF_FACTOR = 0.5  # seconds
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
# A 5xx on issue creation may still have created the issue
CREATE_RETRYABLE_STATUS_CODES = {429}

# Issue file parsing
SUPPORTED_FILE_TYPES = ("csv", "json")
DEFAULT_SEPARATOR = ","
DEFAULT_TITLE_KEY = "title"


# ---------------------------------------------------------------------------
# Data Classes
# ---------------------------------------------------------------------------


@dataclass
class IssueFromFile:
    """A single issue as read from the input file."""

    title: str
    description: str | None = None

    def __str__(self) -> str:
        return f"Title: '{self.title}', Description: '{self.description or ''}'"


@dataclass
class Project:
    """Resolved GitLab project."""

    id: int
    name: str
    path_with_namespace: str
    web_url: str = ""

    @classmethod
    def from_api(cls, data: dict) -> Project:
        return cls(
            id=data["id"],
            name=data["name"],
            path_with_namespace=data["path_with_namespace"],
            web_url=data.get("web_url", ""),
        )


@dataclass
class ProjectMember:
    id: int
    username: str
    name: str


@dataclass
class Issue:
    """Issue creation request for a single project."""

    project_id: int
    title: str
    description: str | None = None
    labels: list[str] = field(default_factory=list)
    assignee_id: int | None = None

    def to_payload(self) -> dict:
        payload: dict = {"title": self.title}
        if self.description is not None:
            payload["description"] = self.description
        if self.labels:
            payload["labels"] = ",".join(self.labels)
        if self.assignee_id is not None:
            payload["assignee_ids"] = [self.assignee_id]
        return payload


@dataclass
class ActionResult:
    """Result of handling a single row of the issue file."""

    row: int
    title: str
    action: str  # "created", "would_create", "checked", "error"
    detail: str = ""
    dry_run: bool = False

    def to_dict(self) -> dict:
        d = {
            "row": self.row,
            "title": self.title,
            "action": self.action,
            "detail": self.detail,
        }
        if self.dry_run:
            d["dry_run"] = True
        return d
