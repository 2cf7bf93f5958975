from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pytest
import requests
from github import GithubException, UnknownObjectException

from droidprep.core.exceptions import EntityNotFound, HostError, TransientHostError
from droidprep.services.github import GitHubClient, graphql_url

NO_SLEEP = {"sleep": lambda delay: None}


@dataclass
class FakeResponse:
    status_code: int
    payload: Any = None
    headers: Optional[Dict[str, str]] = None

    def __post_init__(self):
        self.headers = self.headers or {}

    def json(self) -> Any:
        return self.payload


class FakeSession:
    def __init__(self, responses: List[Any]) -> None:
        self.responses = responses
        self.calls: List[Dict[str, Any]] = []

    def _next(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, **kwargs)


BRANCH_PAYLOAD = {
    "data": {
        "repository": {
            "pullRequest": {
                "baseRefName": "main",
                "headRefName": "feature/login",
                "headRefOid": "a1b2c3d4",
            }
        }
    }
}


def test_graphql_url():
    assert graphql_url("https://api.github.com") == "https://api.github.com/graphql"
    assert graphql_url("https://ghe.example.com/api/v3/") == "https://ghe.example.com/api/graphql"


def test_get_pr_branch_data():
    session = FakeSession([FakeResponse(200, BRANCH_PAYLOAD)])
    client = GitHubClient("tok", session=session, retry_options=NO_SLEEP)

    data = client.get_pr_branch_data("acme", "webapp", 42)

    assert data.base_ref_name == "main"
    assert data.head_ref_oid == "a1b2c3d4"
    call = session.calls[0]
    assert call["url"] == "https://api.github.com/graphql"
    assert call["json"]["variables"] == {"owner": "acme", "repo": "webapp", "number": 42}
    assert call["headers"]["Authorization"] == "Bearer tok"


def test_get_pr_branch_data_retries_server_errors():
    session = FakeSession([FakeResponse(502), FakeResponse(200, BRANCH_PAYLOAD)])
    client = GitHubClient("tok", session=session, retry_options=NO_SLEEP)
    assert client.get_pr_branch_data("acme", "webapp", 42).head_ref_name == "feature/login"
    assert len(session.calls) == 2


def test_get_pr_branch_data_retries_network_errors():
    session = FakeSession([requests.ConnectionError("reset"), FakeResponse(200, BRANCH_PAYLOAD)])
    client = GitHubClient("tok", session=session, retry_options=NO_SLEEP)
    assert client.get_pr_branch_data("acme", "webapp", 42).base_ref_name == "main"


def test_get_pr_branch_data_gives_up_after_retries():
    session = FakeSession([FakeResponse(503), FakeResponse(503), FakeResponse(503)])
    client = GitHubClient("tok", session=session, retry_options=NO_SLEEP)
    with pytest.raises(TransientHostError):
        client.get_pr_branch_data("acme", "webapp", 42)


def test_get_pr_branch_data_not_found():
    payload = {"data": {"repository": {"pullRequest": None}}, "errors": [{"type": "NOT_FOUND", "message": "nope"}]}
    session = FakeSession([FakeResponse(200, payload)])
    client = GitHubClient("tok", session=session, retry_options=NO_SLEEP)
    with pytest.raises(EntityNotFound) as excinfo:
        client.get_pr_branch_data("acme", "webapp", 42)
    assert excinfo.value.number == 42
    assert len(session.calls) == 1


def test_get_pr_branch_data_client_error_is_fatal():
    session = FakeSession([FakeResponse(401, {"message": "Bad credentials"})])
    client = GitHubClient("tok", session=session, retry_options=NO_SLEEP)
    with pytest.raises(HostError) as excinfo:
        client.get_pr_branch_data("acme", "webapp", 42)
    assert not isinstance(excinfo.value, TransientHostError)


class FakeComment:
    def __init__(self, raw_data):
        self.raw_data = raw_data


class FakeIssue:
    def __init__(self, comments):
        self.comments = comments

    def get_comments(self):
        return [FakeComment(comment) for comment in self.comments]


class FakeRepo:
    def __init__(self, issue=None, error=None):
        self.issue = issue
        self.error = error

    def get_issue(self, number):
        if self.error:
            raise self.error
        return self.issue


class FakePyGithub:
    def __init__(self, repo):
        self.repo = repo

    def get_repo(self, full_name):
        return self.repo


def test_list_issue_comments_returns_raw_data():
    repo = FakeRepo(issue=FakeIssue([{"id": 1, "body": "hi"}]))
    client = GitHubClient("tok", client=FakePyGithub(repo), retry_options=NO_SLEEP)
    assert client.list_issue_comments("acme", "webapp", 42) == [{"id": 1, "body": "hi"}]


def test_list_issue_comments_maps_missing_issue():
    repo = FakeRepo(error=UnknownObjectException(404, {"message": "Not Found"}, None))
    client = GitHubClient("tok", client=FakePyGithub(repo), retry_options=NO_SLEEP)
    with pytest.raises(EntityNotFound):
        client.list_issue_comments("acme", "webapp", 42)


def test_list_issue_comments_retries_server_errors():
    class FlakyRepo(FakeRepo):
        calls = 0

        def get_issue(self, number):
            FlakyRepo.calls += 1
            if FlakyRepo.calls == 1:
                raise GithubException(503, {"message": "unavailable"}, None)
            return FakeIssue([])

    client = GitHubClient("tok", client=FakePyGithub(FlakyRepo()), retry_options=NO_SLEEP)
    assert client.list_issue_comments("acme", "webapp", 42) == []
    assert FlakyRepo.calls == 2


def test_permission_errors_are_not_retried():
    repo = FakeRepo(error=GithubException(403, {"message": "Resource not accessible"}, None))
    client = GitHubClient("tok", client=FakePyGithub(repo), retry_options=NO_SLEEP)
    with pytest.raises(HostError) as excinfo:
        client.list_issue_comments("acme", "webapp", 42)
    assert not isinstance(excinfo.value, TransientHostError)


def test_can_read_actions():
    session = FakeSession([FakeResponse(200, {"workflow_runs": []}), FakeResponse(403), requests.Timeout("slow")])
    client = GitHubClient("tok", session=session)

    assert client.can_read_actions("acme", "webapp", "wf-token") is True
    assert session.calls[0]["url"] == "https://api.github.com/repos/acme/webapp/actions/runs"
    assert session.calls[0]["headers"]["Authorization"] == "Bearer wf-token"
    assert client.can_read_actions("acme", "webapp") is False
    assert client.can_read_actions("acme", "webapp") is False
