import json

import pytest

from droidprep.core.context import normalize
from droidprep.core.tools import (
    ACTIONS_READ_WARNING,
    BASE_TOOLS,
    INLINE_COMMENT_TOOL,
    VALIDATOR_DEFAULT_MODEL,
    build_droid_args,
    compose,
    model_overrides,
    normalize_droid_args,
    parse_allowed_tools,
)
from droidprep.core.types.pipeline import Mode

from conftest import issue_comment_event, issues_event, make_inputs


def _pr_context(**inputs):
    return normalize(issue_comment_event("@droid review"), make_inputs(**inputs))


def test_normalize_droid_args_canonicalizes_aliases():
    args = normalize_droid_args('--allowedTools "Read" --disallowed-tools WebSearch')
    assert args == '--enabled-tools "Read" --disabled-tools WebSearch'


def test_normalize_droid_args_strips_inline_mcp_config():
    args = normalize_droid_args("--mcp-config '{\"a\": 1}' --verbose")
    assert "--mcp-config" not in args
    assert args == "--verbose"


@pytest.mark.parametrize(
    "args, expected",
    [
        ('--enabled-tools "github___get_issue,Read"', ["github___get_issue", "Read"]),
        ("--enabled-tools 'a, b'", ["a", "b"]),
        ("--enabled-tools github_pr___x", ["github_pr___x"]),
        ("--enabled-tools --verbose", []),
        ("--verbose", []),
        ("", []),
    ],
)
def test_parse_allowed_tools(args, expected):
    assert parse_allowed_tools(args) == expected


def test_compose_is_deterministic_and_order_stable():
    context = _pr_context()
    first = compose(Mode.REVIEW, context, "tok", droid_comment_id="9001")
    second = compose(Mode.REVIEW, context, "tok", droid_comment_id="9001")
    assert first == second
    assert first.mcp_tools == second.mcp_tools
    assert list(first.allowed_tools[: len(BASE_TOOLS)]) == BASE_TOOLS


def test_user_tools_must_be_namespaced_and_are_deduplicated():
    context = _pr_context()
    result = compose(
        Mode.REVIEW,
        context,
        "tok",
        user_args='--allowedTools "Bash,github___search_code,github_comment___update_droid_comment"',
    )
    assert "Bash" not in result.allowed_tools
    assert "github___search_code" in result.allowed_tools
    assert result.allowed_tools.count("github_comment___update_droid_comment") == 1
    assert "github" in result.launch_manifest["mcpServers"]


def test_pr_gated_servers_absent_outside_pull_requests():
    context = normalize(issues_event(body="@droid"), make_inputs(default_workflow_token="wf"))
    result = compose(
        Mode.SECURITY_SCAN,
        context,
        "tok",
        user_args="--enabled-tools github_pr___list_review_comments",
    )
    servers = result.launch_manifest["mcpServers"]
    assert "github_comment" in servers
    assert "github_inline_comment" not in servers
    assert "github_ci" not in servers
    assert "github_pr" not in servers


def test_review_manifest_contents():
    context = _pr_context(action_path="/action")
    result = compose(Mode.REVIEW, context, "tok", droid_comment_id="9001")
    servers = result.launch_manifest["mcpServers"]

    assert sorted(servers) == ["github_comment", "github_inline_comment", "github_pr"]
    comment = servers["github_comment"]
    assert comment["command"] == "bun"
    assert comment["args"] == ["run", "/action/src/mcp/github-comment-server.ts"]
    assert comment["env"]["DROID_COMMENT_ID"] == "9001"
    assert servers["github_pr"]["env"]["PR_NUMBER"] == "42"
    assert json.loads(result.mcp_tools) == result.launch_manifest


def test_ci_server_kept_with_warning_when_probe_fails():
    context = _pr_context(default_workflow_token="wf-token")
    warnings = []
    probed = []

    def probe(token):
        probed.append(token)
        return False

    result = compose(Mode.REVIEW, context, "tok", can_read_actions=probe, warn=warnings.append)

    assert probed == ["wf-token"]
    assert warnings == [ACTIONS_READ_WARNING]
    assert result.launch_manifest["mcpServers"]["github_ci"]["env"]["GITHUB_TOKEN"] == "wf-token"


def test_inline_comment_tool_only_in_review_modes():
    context = _pr_context()
    assert INLINE_COMMENT_TOOL not in compose(Mode.FILL, context, "tok").allowed_tools
    assert INLINE_COMMENT_TOOL in compose(Mode.SECURITY_REVIEW, context, "tok").allowed_tools


def test_model_overrides():
    inputs = make_inputs(review_model="claude-x", security_model="sec-model", reasoning_effort="low")
    assert model_overrides(Mode.FILL, inputs) == (None, None)
    assert model_overrides(Mode.REVIEW, inputs) == ("claude-x", "low")
    assert model_overrides(Mode.SECURITY_SCAN, inputs) == ("sec-model", "low")
    assert model_overrides(Mode.REVIEW_VALIDATOR, make_inputs()) == (VALIDATOR_DEFAULT_MODEL, "high")
    assert model_overrides(Mode.SECURITY_REVIEW, make_inputs(review_model="claude-x")) == ("claude-x", None)


def test_build_droid_args_keeps_user_args_last():
    args = build_droid_args(["Read", "LS"], "--verbose", model="m", reasoning_effort="high")
    assert args == '--enabled-tools "Read,LS" --model "m" --reasoning-effort "high" --verbose'
