"""
gl-issues: Create GitLab issues from the rows of a CSV or JSON file.

Resolves the target project by id, name or full path, maps file columns (or
JSON keys) to issue title and description, and creates one issue per row.

Environment:
    GITLAB_URL          - GitLab instance URL (default: https://gitlab.com)
    GITLAB_ACCESS_TOKEN - GitLab Personal Access Token
    RUST_LOG            - Log level (trace, debug, info, warn, error)
"""

__version__ = "0.1.0"

from gl_issues.cli import main  # noqa: E402

__all__ = ["main", "__version__"]
