"""Retry behaviour on the requests gl-issues makes: project search, member lookup, issue creation."""

import json
from unittest.mock import patch

import pytest
import requests
import responses

from gl_issues.client import GitLabClient
from gl_issues.importer import IssueImporter
from gl_issues.models import RETRY_BACKOFF_FACTOR, Issue, IssueFromFile

# Constants
MOCK_GITLAB_URL = "https://gitlab.example.com"
MOCK_API_URL = f"{MOCK_GITLAB_URL}/api/v4"
ISSUES_URL = f"{MOCK_API_URL}/projects/123/issues"


def connection_error_then(status, body):
    """responses callback: the first call drops the connection, later calls answer normally."""
    calls = [0]

    def callback(request):
        calls[0] += 1
        if calls[0] == 1:
            raise requests.exceptions.ConnectionError("Connection aborted")
        return (status, {}, body)

    return callback, calls


class TestProjectSearchRetry:
    @responses.activate
    def test_rate_limited_search_is_retried(self, sample_project):
        responses.add(responses.GET, f"{MOCK_API_URL}/projects", status=429, headers={"Retry-After": "2"})
        responses.add(responses.GET, f"{MOCK_API_URL}/projects", json=[sample_project])

        client = GitLabClient(MOCK_GITLAB_URL, "test-token", max_retries=3)

        with patch("time.sleep") as mock_sleep:
            project = client.resolve_project(name="my-project")

        assert project.id == 123
        mock_sleep.assert_called_once_with(2.0)

    @responses.activate
    def test_project_lookup_gives_up_after_max_retries(self):
        responses.add(responses.GET, f"{MOCK_API_URL}/projects/123", status=502)
        responses.add(responses.GET, f"{MOCK_API_URL}/projects/123", status=502)

        client = GitLabClient(MOCK_GITLAB_URL, "test-token", max_retries=1)

        with patch("time.sleep"):
            with pytest.raises(requests.HTTPError) as exc_info:
                client.resolve_project(project_id=123)

        assert exc_info.value.response.status_code == 502
        assert len(responses.calls) == 2


class TestMemberLookupRetry:
    @responses.activate
    def test_server_errors_are_retried_with_backoff(self, sample_members):
        responses.add(responses.GET, f"{MOCK_API_URL}/projects/123/members/all", status=503)
        responses.add(responses.GET, f"{MOCK_API_URL}/projects/123/members/all", status=500)
        responses.add(responses.GET, f"{MOCK_API_URL}/projects/123/members/all", json=sample_members)

        client = GitLabClient(MOCK_GITLAB_URL, "test-token", max_retries=3)

        with patch("time.sleep") as mock_sleep:
            assert client.resolve_assignee(123, "jdoe") == 7

        assert [c.args[0] for c in mock_sleep.call_args_list] == [RETRY_BACKOFF_FACTOR, RETRY_BACKOFF_FACTOR * 2]

    @responses.activate
    def test_connection_error_is_retried(self, sample_members):
        callback, calls = connection_error_then(200, json.dumps(sample_members))
        responses.add_callback(responses.GET, f"{MOCK_API_URL}/projects/123/members/all", callback=callback)

        client = GitLabClient(MOCK_GITLAB_URL, "test-token", max_retries=3)

        with patch("time.sleep"):
            assert client.resolve_assignee(123, "rroe") == 8

        assert calls[0] == 2

    @responses.activate
    def test_forbidden_is_not_retried(self):
        responses.add(responses.GET, f"{MOCK_API_URL}/projects/123/members/all", status=403)

        client = GitLabClient(MOCK_GITLAB_URL, "test-token", max_retries=3)

        with pytest.raises(requests.HTTPError):
            client.resolve_assignee(123, "jdoe")

        assert len(responses.calls) == 1


class TestIssueCreationRetry:
    """Issue creation is only retried when GitLab rejected it before processing."""

    @responses.activate
    def test_rate_limited_create_is_retried(self, mock_client, project):
        responses.add(responses.POST, ISSUES_URL, status=429)
        responses.add(responses.POST, ISSUES_URL, json={"iid": 1}, status=201)

        with patch("time.sleep"):
            results = IssueImporter(mock_client, project).import_issues([IssueFromFile(title="Hello")])

        assert [r.action for r in results] == ["created"]
        assert len(responses.calls) == 2

    @responses.activate
    def test_server_error_is_not_retried(self, mock_client, project):
        responses.add(responses.POST, ISSUES_URL, status=502)

        with patch("time.sleep") as mock_sleep:
            results = IssueImporter(mock_client, project).import_issues([IssueFromFile(title="Hello")])
            mock_sleep.assert_not_called()

        assert [r.action for r in results] == ["error"]
        assert len(responses.calls) == 1

    @responses.activate
    def test_dropped_connection_is_not_retried(self, mock_client):
        callback, calls = connection_error_then(201, '{"iid": 1}')
        responses.add_callback(responses.POST, ISSUES_URL, callback=callback)

        with patch("time.sleep") as mock_sleep:
            with pytest.raises(requests.exceptions.ConnectionError):
                mock_client.create_issue(Issue(project_id=123, title="Hello"))
            mock_sleep.assert_not_called()

        assert calls[0] == 1

    @responses.activate
    def test_dropped_connection_is_recorded_per_row(self, mock_client, project):
        callback, calls = connection_error_then(201, '{"iid": 2}')
        responses.add_callback(responses.POST, ISSUES_URL, callback=callback)

        with patch("time.sleep"):
            results = IssueImporter(mock_client, project).import_issues(
                [IssueFromFile(title="First"), IssueFromFile(title="Second")]
            )

        assert [r.action for r in results] == ["error", "created"]
        assert calls[0] == 2


class TestBackoff:
    @pytest.mark.parametrize(
        "status, headers, attempt, expected",
        [
            (503, {}, 0, RETRY_BACKOFF_FACTOR),
            (503, {}, 2, RETRY_BACKOFF_FACTOR * 4),
            (429, {"Retry-After": "5.5"}, 3, 5.5),
            (429, {"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}, 1, RETRY_BACKOFF_FACTOR * 2),
        ],
    )
    def test_wait_time(self, mock_client, status, headers, attempt, expected):
        resp = requests.Response()
        resp.status_code = status
        resp.headers = headers

        assert mock_client._calculate_backoff(resp, attempt) == expected
