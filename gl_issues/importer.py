"""Creating GitLab issues from parsed file rows."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import requests

from gl_issues.models import ActionResult, Issue, IssueFromFile, Project

if TYPE_CHECKING:
    from gl_issues.client import GitLabClient


class IssueImporter:
    """Create one issue per parsed row in a single project, sequentially."""

    def __init__(
        self,
        client: GitLabClient | None,
        project: Project | None,
        labels: list[str] | None = None,
        assignee_id: int | None = None,
    ):
        self.client = client
        self.project = project
        self.labels = list(labels or [])
        self.assignee_id = assignee_id
        self.logger = logging.getLogger("gl-issues")
        self.results: list[ActionResult] = []

    @property
    def dry_run(self) -> bool:
        return bool(self.client and self.client.dry_run)

    def build_issue(self, issue: IssueFromFile) -> Issue:
        return Issue(
            project_id=self.project.id,
            title=issue.title,
            description=issue.description,
            labels=self.labels,
            assignee_id=self.assignee_id,
        )

    def import_issues(self, issues: list[IssueFromFile]) -> list[ActionResult]:
        for row, parsed in enumerate(issues, start=1):
            self.create(row, parsed)
        return self.results

    def create(self, row: int, parsed: IssueFromFile) -> ActionResult:
        issue = self.build_issue(parsed)
        if self.dry_run:
            self.client.create_issue(issue)
            return self._record(
                ActionResult(row=row, title=issue.title, action="would_create", detail=self._describe(issue), dry_run=True)
            )

        try:
            created = self.client.create_issue(issue)
        except requests.RequestException as e:
            return self._record(ActionResult(row=row, title=issue.title, action="error", detail=str(e)))

        detail = f"#{created.get('iid', '?')}"
        if created.get("web_url"):
            detail += f" {created['web_url']}"
        return self._record(ActionResult(row=row, title=issue.title, action="created", detail=detail))

    def check_issues(self, issues: list[IssueFromFile]) -> list[ActionResult]:
        """Report what each row would become, without touching the API."""
        for row, parsed in enumerate(issues, start=1):
            self.logger.debug(f"Row {row}: {parsed}")
            description = parsed.description or ""
            detail = f"{len(description)} chars of description" if description else "no description"
            self._record(ActionResult(row=row, title=parsed.title, action="checked", detail=detail))
        return self.results

    def _describe(self, issue: Issue) -> str:
        parts = [f"project={self.project.path_with_namespace}"]
        if issue.labels:
            parts.append(f"labels={','.join(issue.labels)}")
        if issue.assignee_id is not None:
            parts.append(f"assignee_id={issue.assignee_id}")
        return " ".join(parts)

    def _record(self, result: ActionResult) -> ActionResult:
        self.results.append(result)
        icon = {
            "created": "✓",
            "checked": "·",
            "error": "✗",
            "would_create": "○",
        }.get(result.action, "?")

        handler = self.logger.handlers[0] if self.logger.handlers else None
        if handler and getattr(handler.formatter, "json_mode", False):
            record = self.logger.makeRecord("gl-issues", logging.INFO, "", 0, "", (), None)
            record.action_result = result
            self.logger.handle(record)
        else:
            prefix = "[DRY-RUN] " if result.dry_run else ""
            self.logger.info(
                f"{prefix}{icon} row {result.row}: {result.title} → {result.action}"
                f"{' (' + result.detail + ')' if result.detail else ''}"
            )
        return result
