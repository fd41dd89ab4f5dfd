"""Shared test fixtures for gl-issues tests."""

import logging
import sys
from pathlib import Path
from typing import Any

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from gl_issues.client import GitLabClient
from gl_issues.models import Project

# Constants for use in tests - pytest makes conftest.py fixtures available,
# but these constants need to be imported directly from tests
MOCK_GITLAB_URL = "https://gitlab.example.com"
MOCK_API_URL = f"{MOCK_GITLAB_URL}/api/v4"


@pytest.fixture
def mock_client():
    """GitLabClient pointing at mock server."""
    return GitLabClient(MOCK_GITLAB_URL, "test-token", dry_run=False)


@pytest.fixture
def dry_run_client():
    """GitLabClient in dry-run mode."""
    return GitLabClient(MOCK_GITLAB_URL, "test-token", dry_run=True)


@pytest.fixture
def sample_project() -> dict[str, Any]:
    """Sample project API response."""
    return {
        "id": 123,
        "name": "my-project",
        "path": "my-project",
        "path_with_namespace": "myorg/my-project",
        "web_url": f"{MOCK_GITLAB_URL}/myorg/my-project",
    }


@pytest.fixture
def project(sample_project) -> Project:
    """Sample resolved Project."""
    return Project.from_api(sample_project)


@pytest.fixture
def sample_members() -> list[dict[str, Any]]:
    """Sample /members/all API response."""
    return [
        {"id": 7, "username": "jdoe", "name": "Jane Doe"},
        {"id": 8, "username": "rroe", "name": "Richard Roe"},
    ]


@pytest.fixture
def write_file(tmp_path):
    """Write text to a file in tmp_path and return its path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def clean_env(monkeypatch):
    """Remove gl-issues environment variables for the duration of a test."""
    for var in ("GITLAB_URL", "GITLAB_ACCESS_TOKEN", "RUST_LOG"):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def reset_logger():
    """Drop handlers installed by setup_logging so they don't outlive captured streams."""
    yield
    logger = logging.getLogger("gl-issues")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
