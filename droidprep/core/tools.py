"""Tool allow-list and capability server manifest composition"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from droidprep.core.types.events import NormalizedContext
from droidprep.core.types.pipeline import Mode

logger = logging.getLogger(__name__)

NAMESPACE_SEPARATOR = "___"

BASE_TOOLS = [
    "Read",
    "Grep",
    "Glob",
    "LS",
    "Execute",
    "github_comment___update_droid_comment",
]

INLINE_COMMENT_TOOL = "github_inline_comment___create_inline_comment"

REVIEW_TOOLS = [
    "github_pr___list_review_comments",
    "github_pr___submit_review",
    "github_pr___delete_comment",
    "github_pr___minimize_comment",
    "github_pr___reply_to_comment",
    "github_pr___resolve_review_thread",
]

MODE_TOOLS: Dict[Mode, List[str]] = {
    Mode.FILL: ["github_pr___update_pr_description"],
    Mode.REVIEW: [INLINE_COMMENT_TOOL] + REVIEW_TOOLS,
    Mode.SECURITY_REVIEW: [INLINE_COMMENT_TOOL] + REVIEW_TOOLS,
    Mode.SECURITY_SCAN: [],
    Mode.REVIEW_VALIDATOR: ["ApplyPatch", "Create", "Edit", INLINE_COMMENT_TOOL, "github_pr___submit_review"],
}

VALIDATOR_DEFAULT_MODEL = "gpt-5.2"
VALIDATOR_DEFAULT_REASONING = "high"

GITHUB_MCP_IMAGE = "ghcr.io/github/github-mcp-server:sha-23fa0dd"

ACTIONS_READ_WARNING = (
    "The github_ci MCP server requires 'actions: read' permission. "
    "Please ensure your GitHub token has this permission. "
    "See: https://docs.github.com/en/actions/security-guides/"
    "automatic-token-authentication#permissions-for-the-github_token"
)

ALLOWED_FLAG_PATTERN = re.compile(
    r"--(?:allowedTools|allowed-tools|enabled-tools|enabledTools)\s+(?:\"([^\"]+)\"|'([^']+)'|([^\s]+))"
)
MCP_CONFIG_PATTERN = re.compile(r"--mcp-config\s+(?:\"[^\"]*\"|'[^']*'|[^\s]+)")

FLAG_ALIASES = [
    ("--allowedTools", "--enabled-tools"),
    ("--allowed-tools", "--enabled-tools"),
    ("--enabledTools", "--enabled-tools"),
    ("--disallowedTools", "--disabled-tools"),
    ("--disallowed-tools", "--disabled-tools"),
]

def normalize_droid_args(args: Optional[str]) -> str:
    """Canonicalize tool flag aliases and drop inline --mcp-config values"""
    if not args:
        return ""
    for alias, canonical in FLAG_ALIASES:
        args = args.replace(alias, canonical)
    return MCP_CONFIG_PATTERN.sub("", args).strip()

def parse_allowed_tools(args: Optional[str]) -> List[str]:
    """Tools named by the first enabled-tools style flag, or [] when unparseable"""
    if not args:
        return []
    match = ALLOWED_FLAG_PATTERN.search(args)
    if not match:
        return []
    value = match.group(1) or match.group(2) or match.group(3)
    if not value or value.startswith("--"):
        return []
    return [tool.strip() for tool in value.split(",") if tool.strip()]

def is_namespaced_tool(tool: str) -> bool:
    """Only namespaced host tools may be added through user arguments"""
    return tool.startswith("github_") and NAMESPACE_SEPARATOR in tool

def dedupe(tools: Iterable[str]) -> List[str]:
    """Remove duplicates keeping first-seen order"""
    return list(dict.fromkeys(tools))

def model_overrides(mode: Mode, inputs) -> Tuple[Optional[str], Optional[str]]:
    """Model and reasoning effort passed to the agent for a mode"""
    effort = inputs.reasoning_effort or None
    if mode == Mode.FILL:
        return None, None
    if mode.is_security:
        return (inputs.security_model or inputs.review_model or None), effort
    if mode == Mode.REVIEW_VALIDATOR and not inputs.review_model and not effort:
        return VALIDATOR_DEFAULT_MODEL, VALIDATOR_DEFAULT_REASONING
    return (inputs.review_model or None), effort

def build_droid_args(
    allowed_tools: List[str],
    normalized_args: str = "",
    model: Optional[str] = None,
    reasoning_effort: Optional[str] = None
) -> str:
    """Assemble the final agent argument string"""
    parts = [f'--enabled-tools "{",".join(allowed_tools)}"']
    if model:
        parts.append(f'--model "{model}"')
    if reasoning_effort:
        parts.append(f'--reasoning-effort "{reasoning_effort}"')
    if normalized_args:
        parts.append(normalized_args)
    return " ".join(parts).strip()

def _bun_server(action_path: str, filename: str, env: Dict[str, str]) -> Dict[str, Any]:
    return {
        "command": "bun",
        "args": ["run", f"{action_path}/src/mcp/{filename}"],
        "env": env,
    }

def build_launch_manifest(
    allowed_tools: List[str],
    context: NormalizedContext,
    github_token: str,
    droid_comment_id: Optional[str] = None,
    can_read_actions: Optional[Callable[[str], bool]] = None,
    warn: Optional[Callable[[str], None]] = None
) -> Dict[str, Any]:
    """Capability servers to start next to the agent

    Entries whose predicate is false are omitted entirely. can_read_actions is
    the only call allowed to touch the network.
    """
    warn = warn or logger.warning
    inputs = context.inputs
    owner = context.repository.owner
    repo = context.repository.repo
    pr_number = str(context.entity_number)

    has_github_tools = any(tool.startswith("github___") for tool in allowed_tools)
    has_inline_tools = any(tool.startswith("github_inline_comment___") for tool in allowed_tools)
    has_pr_tools = any(tool.startswith("github_pr___") for tool in allowed_tools)

    servers: Dict[str, Any] = {}

    comment_env = {
        "GITHUB_TOKEN": github_token,
        "REPO_OWNER": owner,
        "REPO_NAME": repo,
    }
    if droid_comment_id:
        comment_env["DROID_COMMENT_ID"] = str(droid_comment_id)
    comment_env["GITHUB_EVENT_NAME"] = context.event_name
    comment_env["GITHUB_API_URL"] = inputs.github_api_url
    servers["github_comment"] = _bun_server(inputs.action_path, "github-comment-server.ts", comment_env)

    if context.is_pr and (has_github_tools or has_inline_tools):
        servers["github_inline_comment"] = _bun_server(
            inputs.action_path,
            "github-inline-comment-server.ts",
            {
                "GITHUB_TOKEN": github_token,
                "REPO_OWNER": owner,
                "REPO_NAME": repo,
                "PR_NUMBER": pr_number,
                "GITHUB_API_URL": inputs.github_api_url,
            },
        )

    if context.is_pr and inputs.default_workflow_token:
        if can_read_actions is not None and not can_read_actions(inputs.default_workflow_token):
            warn(ACTIONS_READ_WARNING)
        servers["github_ci"] = _bun_server(
            inputs.action_path,
            "github-actions-server.ts",
            {
                "GITHUB_TOKEN": inputs.default_workflow_token,
                "REPO_OWNER": owner,
                "REPO_NAME": repo,
                "PR_NUMBER": pr_number,
                "RUNNER_TEMP": inputs.runner_temp,
            },
        )

    if context.is_pr and has_pr_tools:
        servers["github_pr"] = _bun_server(
            inputs.action_path,
            "github-pr-server.ts",
            {
                "GITHUB_TOKEN": github_token,
                "REPO_OWNER": owner,
                "REPO_NAME": repo,
                "PR_NUMBER": pr_number,
            },
        )

    if has_github_tools:
        servers["github"] = {
            "command": "docker",
            "args": [
                "run",
                "-i",
                "--rm",
                "-e",
                "GITHUB_PERSONAL_ACCESS_TOKEN",
                "-e",
                "GITHUB_HOST",
                GITHUB_MCP_IMAGE,
            ],
            "env": {
                "GITHUB_PERSONAL_ACCESS_TOKEN": github_token,
                "GITHUB_HOST": inputs.github_server_url,
            },
        }

    return {"mcpServers": servers}

@dataclass(frozen=True)
class ToolComposition:
    """Allow-list, launch manifest and argument string of one run"""
    allowed_tools: Tuple[str, ...]
    launch_manifest: Dict[str, Any] = field(compare=False)
    normalized_args: str = ""
    droid_args: str = ""

    @property
    def mcp_tools(self) -> str:
        """Launch manifest serialized for the mcp_tools output"""
        return json.dumps(self.launch_manifest, indent=2)

def compose(
    mode: Mode,
    context: NormalizedContext,
    github_token: str,
    droid_comment_id: Optional[str] = None,
    user_args: Optional[str] = None,
    can_read_actions: Optional[Callable[[str], bool]] = None,
    warn: Optional[Callable[[str], None]] = None
) -> ToolComposition:
    """Compose the tool set of a mode with the user's extra tools"""
    if mode not in MODE_TOOLS:
        raise ValueError(f"No tool set for mode {mode.value}")

    raw_args = context.inputs.droid_args if user_args is None else user_args
    normalized_args = normalize_droid_args(raw_args)
    user_tools = [tool for tool in parse_allowed_tools(normalized_args) if is_namespaced_tool(tool)]

    allowed_tools = dedupe(BASE_TOOLS + MODE_TOOLS[mode] + user_tools)
    manifest = build_launch_manifest(
        allowed_tools,
        context,
        github_token,
        droid_comment_id=droid_comment_id,
        can_read_actions=can_read_actions,
        warn=warn,
    )
    model, reasoning_effort = model_overrides(mode, context.inputs)

    logger.info(
        "Composed tool set",
        extra={
            'mode': mode.value,
            'tools': len(allowed_tools),
            'servers': sorted(manifest["mcpServers"]),
        }
    )
    return ToolComposition(
        allowed_tools=tuple(allowed_tools),
        launch_manifest=manifest,
        normalized_args=normalized_args,
        droid_args=build_droid_args(allowed_tools, normalized_args, model, reasoning_effort),
    )
