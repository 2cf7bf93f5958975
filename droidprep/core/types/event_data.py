"""Per-event data variants handed to prompt templates

Each variant validates its own required fields on construction and fails
instead of defaulting a missing value.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from droidprep.core.exceptions import EventDataError
from droidprep.core.types.events import NormalizedContext
from droidprep.core.types.pipeline import PRBranchData, ReviewArtifacts

def _require(variant, *names: str) -> None:
    for name in names:
        if not getattr(variant, name):
            raise EventDataError(f"{variant.event_name} event requires {name}")

@dataclass(frozen=True)
class PullRequestReviewCommentEvent:
    pr_number: int
    comment_body: str
    comment_id: Optional[str] = None
    droid_branch: Optional[str] = None
    base_branch: Optional[str] = None
    event_name: str = field(default="pull_request_review_comment", init=False)
    is_pr: bool = field(default=True, init=False)

    def __post_init__(self):
        _require(self, "pr_number", "comment_body")

@dataclass(frozen=True)
class PullRequestReviewEvent:
    pr_number: int
    comment_body: str
    droid_branch: Optional[str] = None
    base_branch: Optional[str] = None
    event_name: str = field(default="pull_request_review", init=False)
    is_pr: bool = field(default=True, init=False)

    def __post_init__(self):
        _require(self, "pr_number", "comment_body")

@dataclass(frozen=True)
class PullRequestCommentEvent:
    """An issue_comment left on a pull request"""
    comment_id: str
    pr_number: int
    comment_body: str
    droid_branch: Optional[str] = None
    base_branch: Optional[str] = None
    event_name: str = field(default="issue_comment", init=False)
    is_pr: bool = field(default=True, init=False)

    def __post_init__(self):
        _require(self, "comment_id", "pr_number", "comment_body")

@dataclass(frozen=True)
class IssueCommentEvent:
    """An issue_comment left on a plain issue"""
    comment_id: str
    issue_number: int
    comment_body: str
    base_branch: str
    droid_branch: str
    event_name: str = field(default="issue_comment", init=False)
    is_pr: bool = field(default=False, init=False)

    def __post_init__(self):
        _require(self, "comment_id", "issue_number", "comment_body", "base_branch", "droid_branch")

@dataclass(frozen=True)
class IssueOpenedEvent:
    issue_number: int
    base_branch: str
    droid_branch: str
    event_name: str = field(default="issues", init=False)
    event_action: str = field(default="opened", init=False)
    is_pr: bool = field(default=False, init=False)

    def __post_init__(self):
        _require(self, "issue_number", "base_branch", "droid_branch")

@dataclass(frozen=True)
class IssueAssignedEvent:
    issue_number: int
    base_branch: str
    droid_branch: str
    assignee_trigger: Optional[str] = None
    event_name: str = field(default="issues", init=False)
    event_action: str = field(default="assigned", init=False)
    is_pr: bool = field(default=False, init=False)

    def __post_init__(self):
        _require(self, "issue_number", "base_branch", "droid_branch")

@dataclass(frozen=True)
class IssueLabeledEvent:
    issue_number: int
    base_branch: str
    droid_branch: str
    label_trigger: str = ""
    event_name: str = field(default="issues", init=False)
    event_action: str = field(default="labeled", init=False)
    is_pr: bool = field(default=False, init=False)

    def __post_init__(self):
        _require(self, "issue_number", "base_branch", "droid_branch")

@dataclass(frozen=True)
class PullRequestEvent:
    pr_number: int
    event_action: Optional[str] = None
    droid_branch: Optional[str] = None
    base_branch: Optional[str] = None
    event_name: str = field(default="pull_request", init=False)
    is_pr: bool = field(default=True, init=False)

    def __post_init__(self):
        _require(self, "pr_number")

EventData = Union[
    PullRequestReviewCommentEvent,
    PullRequestReviewEvent,
    PullRequestCommentEvent,
    IssueCommentEvent,
    IssueOpenedEvent,
    IssueAssignedEvent,
    IssueLabeledEvent,
    PullRequestEvent,
]

def build_event_data(
    context: NormalizedContext,
    comment_id: Optional[str] = None,
    comment_body: Optional[str] = None,
    base_branch: Optional[str] = None,
    droid_branch: Optional[str] = None,
) -> EventData:
    """Select and construct the event data variant for a context"""
    number = context.entity_number
    payload = context.payload

    if context.event_name == "pull_request_review_comment":
        if not context.is_pr:
            raise EventDataError("pull_request_review_comment requires PR context")
        return PullRequestReviewCommentEvent(
            pr_number=number,
            comment_body=comment_body or "",
            comment_id=comment_id,
            droid_branch=droid_branch,
            base_branch=base_branch,
        )

    if context.event_name == "pull_request_review":
        if not context.is_pr:
            raise EventDataError("pull_request_review requires PR context")
        return PullRequestReviewEvent(
            pr_number=number,
            comment_body=comment_body or "",
            droid_branch=droid_branch,
            base_branch=base_branch,
        )

    if context.event_name == "issue_comment":
        if context.is_pr:
            return PullRequestCommentEvent(
                comment_id=comment_id or "",
                pr_number=number,
                comment_body=comment_body or "",
                droid_branch=droid_branch,
                base_branch=base_branch,
            )
        return IssueCommentEvent(
            comment_id=comment_id or "",
            issue_number=number,
            comment_body=comment_body or "",
            base_branch=base_branch or "",
            droid_branch=droid_branch or "",
        )

    if context.event_name == "issues":
        if context.event_action == "opened":
            return IssueOpenedEvent(
                issue_number=number,
                base_branch=base_branch or "",
                droid_branch=droid_branch or "",
            )
        if context.event_action == "assigned":
            return IssueAssignedEvent(
                issue_number=number,
                base_branch=base_branch or "",
                droid_branch=droid_branch or "",
                assignee_trigger=(payload.get("assignee") or {}).get("login"),
            )
        if context.event_action == "labeled":
            return IssueLabeledEvent(
                issue_number=number,
                base_branch=base_branch or "",
                droid_branch=droid_branch or "",
                label_trigger=(payload.get("label") or {}).get("name") or "",
            )
        raise EventDataError(f"Unsupported issues action: {context.event_action}")

    if context.event_name == "pull_request":
        if not context.is_pr:
            raise EventDataError("pull_request event requires PR context")
        return PullRequestEvent(
            pr_number=number,
            event_action=context.event_action,
            droid_branch=droid_branch,
            base_branch=base_branch,
        )

    raise EventDataError(f"Unsupported event type: {context.event_name}")

@dataclass(frozen=True)
class PreparedContext:
    """Fully resolved input of a prompt template"""
    repository: str
    trigger_phrase: str
    event_data: EventData
    droid_comment_id: Optional[str] = None
    trigger_username: Optional[str] = None
    droid_branch: Optional[str] = None
    github_context: Optional[NormalizedContext] = None
    pr_branch_data: Optional[PRBranchData] = None
    review_artifacts: Optional[ReviewArtifacts] = None

    @property
    def entity_number(self) -> str:
        """PR or issue number as shown to the agent"""
        number = getattr(self.event_data, "pr_number", None) or getattr(
            self.event_data, "issue_number", None
        )
        if number:
            return str(number)
        if self.github_context is not None:
            return str(self.github_context.entity_number)
        return "unknown"
