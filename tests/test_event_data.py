import pytest

from droidprep.core.context import normalize
from droidprep.core.exceptions import EventDataError
from droidprep.core.types.event_data import (
    IssueCommentEvent,
    IssueLabeledEvent,
    PreparedContext,
    PullRequestCommentEvent,
    PullRequestEvent,
    build_event_data,
)

from conftest import issue_comment_event, issues_event, make_inputs, pull_request_event


def test_issue_comment_on_pr_builds_pr_variant():
    context = normalize(issue_comment_event("@droid"), make_inputs())
    data = build_event_data(context, comment_id="555", comment_body="@droid")
    assert isinstance(data, PullRequestCommentEvent)
    assert data.is_pr is True
    assert data.pr_number == 42


def test_issue_comment_on_issue_requires_both_branches():
    context = normalize(issue_comment_event("@droid", is_pr=False), make_inputs())
    with pytest.raises(EventDataError):
        build_event_data(context, comment_id="555", comment_body="@droid", base_branch="main")

    data = build_event_data(
        context,
        comment_id="555",
        comment_body="@droid",
        base_branch="main",
        droid_branch="droid/issue-42",
    )
    assert isinstance(data, IssueCommentEvent)
    assert data.is_pr is False


def test_labeled_issue_carries_label():
    context = normalize(issues_event(action="labeled", label={"name": "droid"}), make_inputs())
    data = build_event_data(context, base_branch="main", droid_branch="droid/issue-7")
    assert isinstance(data, IssueLabeledEvent)
    assert data.label_trigger == "droid"


def test_unsupported_issues_action():
    context = normalize(issues_event(action="closed"), make_inputs())
    with pytest.raises(EventDataError):
        build_event_data(context, base_branch="main", droid_branch="droid/x")


def test_prepared_context_entity_number():
    context = normalize(pull_request_event(number=13), make_inputs())
    data = build_event_data(context)
    assert isinstance(data, PullRequestEvent)
    prepared = PreparedContext(
        repository="acme/webapp",
        trigger_phrase="@droid",
        event_data=data,
        github_context=context,
    )
    assert prepared.entity_number == "13"
