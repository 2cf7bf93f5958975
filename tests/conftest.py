from datetime import date
from typing import Any, Dict, List, Optional

import pytest

from droidprep.config import ActionInputs
from droidprep.core.materializer import GitCommandError
from droidprep.core.modes import RunEnvironment
from droidprep.core.outputs import ActionOutputs
from droidprep.core.types.events import RawEvent
from droidprep.core.types.pipeline import PRBranchData

HEAD_OID = "a1b2c3d4"
MERGE_BASE = "m0e1r2g3"


class FakeGitHub:
    def __init__(
        self,
        issue_comments: Optional[List[Dict[str, Any]]] = None,
        review_comments: Optional[List[Dict[str, Any]]] = None,
        user_type: str = "User",
        branch_data: Optional[PRBranchData] = None,
        can_read: bool = True,
    ) -> None:
        self.issue_comments = issue_comments or []
        self.review_comments = review_comments or []
        self.user_type = user_type
        self.branch_data = branch_data or PRBranchData(
            base_ref_name="main",
            head_ref_name="feature/login",
            head_ref_oid=HEAD_OID,
        )
        self.can_read = can_read
        self.calls: List[tuple] = []
        self.created_comments: List[Dict[str, Any]] = []

    def get_user_type(self, login: str) -> str:
        self.calls.append(("get_user_type", login))
        return self.user_type

    def get_pr_branch_data(self, owner: str, repo: str, number: int) -> PRBranchData:
        self.calls.append(("get_pr_branch_data", owner, repo, number))
        return self.branch_data

    def list_issue_comments(self, owner: str, repo: str, number: int) -> List[Dict[str, Any]]:
        self.calls.append(("list_issue_comments", owner, repo, number))
        return self.issue_comments

    def list_review_comments(self, owner: str, repo: str, number: int) -> List[Dict[str, Any]]:
        self.calls.append(("list_review_comments", owner, repo, number))
        return self.review_comments

    def create_comment(self, owner: str, repo: str, number: int, body: str) -> int:
        self.created_comments.append({"owner": owner, "repo": repo, "number": number, "body": body})
        return 9001

    def can_read_actions(self, owner: str, repo: str, token: Optional[str] = None) -> bool:
        self.calls.append(("can_read_actions", owner, repo, token))
        return self.can_read

    def called(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


class FakeGit:
    def __init__(
        self,
        head: str = HEAD_OID,
        diff: bytes = b"diff --git a/app.py b/app.py\n+print('hi')\n",
        shallow: bool = True,
    ) -> None:
        self.head = head
        self.diff = diff
        self.shallow = shallow
        self.calls: List[List[str]] = []
        self.bounded_calls: List[tuple] = []

    def run(self, args: List[str]) -> str:
        self.calls.append(list(args))
        if args[:2] == ["rev-parse", "HEAD"]:
            return self.head
        if args[:2] == ["checkout", "--detach"]:
            self.head = args[2]
            return ""
        if args == ["fetch", "--unshallow"] and not self.shallow:
            raise GitCommandError(args, 128, "--unshallow on a complete repository does not make sense")
        if args[0] == "merge-base":
            return MERGE_BASE
        return ""

    def read_bounded(self, args: List[str], limit: int) -> bytes:
        self.bounded_calls.append((list(args), limit))
        return self.diff


def make_inputs(tmp_path=None, **overrides: Any) -> ActionInputs:
    values: Dict[str, Any] = {"runner_temp": str(tmp_path) if tmp_path is not None else "/tmp"}
    values.update(overrides)
    return ActionInputs(**values)


def repository() -> Dict[str, Any]:
    return {
        "name": "webapp",
        "full_name": "acme/webapp",
        "owner": {"login": "acme"},
        "default_branch": "main",
    }


def issue_comment_event(body: str, is_pr: bool = True, number: int = 42, actor: str = "octocat") -> RawEvent:
    issue: Dict[str, Any] = {"number": number, "title": "Add login", "body": "", "user": {"login": "author"}}
    if is_pr:
        issue["pull_request"] = {"url": f"https://api.github.com/repos/acme/webapp/pulls/{number}"}
    return RawEvent(
        event_name="issue_comment",
        payload={
            "action": "created",
            "issue": issue,
            "comment": {
                "id": 555,
                "body": body,
                "user": {"login": actor},
                "created_at": "2025-01-02T10:00:00Z",
            },
            "repository": repository(),
            "sender": {"login": actor},
        },
        actor=actor,
        run_id="777",
    )


def pull_request_event(body: str = "", action: str = "opened", number: int = 42) -> RawEvent:
    return RawEvent(
        event_name="pull_request",
        payload={
            "action": action,
            "pull_request": {
                "number": number,
                "title": "Add login",
                "body": body,
                "user": {"login": "author"},
            },
            "repository": repository(),
            "sender": {"login": "author"},
        },
        actor="author",
        run_id="777",
    )


def issues_event(action: str = "opened", body: str = "", number: int = 7, **extra: Any) -> RawEvent:
    payload: Dict[str, Any] = {
        "action": action,
        "issue": {"number": number, "title": "Broken build", "body": body, "user": {"login": "author"}},
        "repository": repository(),
        "sender": {"login": "author"},
    }
    payload.update(extra)
    return RawEvent(event_name="issues", payload=payload, actor="author", run_id="777")


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def outputs() -> ActionOutputs:
    return ActionOutputs()


@pytest.fixture
def env(github: FakeGitHub, git: FakeGit, outputs: ActionOutputs) -> RunEnvironment:
    return RunEnvironment(
        github=github,
        github_token="ghs_test",
        outputs=outputs,
        git=git,
        today=lambda: date(2025, 1, 2),
    )
