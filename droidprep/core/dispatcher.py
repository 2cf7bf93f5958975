"""Mode dispatch for tag-triggered runs"""

import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from droidprep.core.commands import Command, ParsedCommand, extract_command_from_context
from droidprep.core.exceptions import ConfigurationError, InvariantViolation
from droidprep.core.modes import PREPARERS, RunEnvironment, security_scan_branch
from droidprep.core.trigger import check_human_actor
from droidprep.core.types.events import NormalizedContext
from droidprep.core.types.pipeline import BranchInfo, Dispatch, Mode, PrepareResult

logger = logging.getLogger(__name__)

SECURITY_REVIEW_MARKER = "## Security Review Summary"
DROID_APP_BOT_ID = 209825114
BOT_LOGIN_HINT = "droid"

SECURITY_REVIEW_EXISTS = "security_review_exists"

COMMAND_DISPATCH: Dict[Command, Dispatch] = {
    Command.FILL: Dispatch(Mode.FILL),
    Command.REVIEW: Dispatch(Mode.REVIEW, run_code_review=True, run_security_review=False),
    Command.DEFAULT: Dispatch(Mode.REVIEW, run_code_review=True, run_security_review=False),
    Command.REVIEW_SECURITY: Dispatch(Mode.DUAL_REVIEW, run_code_review=True, run_security_review=True),
    Command.SECURITY: Dispatch(Mode.SECURITY_REVIEW, run_code_review=False, run_security_review=True),
    Command.SECURITY_FULL: Dispatch(Mode.SECURITY_SCAN),
}

def is_automation_author(user: Optional[Mapping[str, Any]], bot_id: int = DROID_APP_BOT_ID,
                         login_hint: str = BOT_LOGIN_HINT) -> bool:
    """Whether a comment author is this automation's bot identity"""
    if not user:
        return False
    if user.get("id") == bot_id:
        return True
    return user.get("type") == "Bot" and login_hint in (user.get("login") or "").lower()

def has_prior_run(
    comments: Iterable[Mapping[str, Any]],
    marker: str = SECURITY_REVIEW_MARKER,
    bot_id: int = DROID_APP_BOT_ID,
    login_hint: str = BOT_LOGIN_HINT
) -> bool:
    """True when the automation already posted a comment containing marker"""
    return any(
        is_automation_author(comment.get("user"), bot_id, login_hint)
        and marker in (comment.get("body") or "")
        for comment in comments
    )

def decide_mode(
    context: NormalizedContext,
    command: Union[ParsedCommand, Command, str, None],
    prior_security_review: Callable[[], bool]
) -> Dispatch:
    """Map context, command and flags to exactly one mode

    prior_security_review is only called by the rules that need it.
    """
    inputs = context.inputs

    if (inputs.automatic_review or inputs.automatic_security_review) and not context.is_pr:
        flag = "automatic_review" if inputs.automatic_review else "automatic_security_review"
        raise ConfigurationError(f"{flag} requires a pull request context")

    if inputs.automatic_review and inputs.automatic_security_review:
        if prior_security_review():
            logger.info("Security review already exists on this PR, running code review only")
            return Dispatch(Mode.DUAL_REVIEW, run_code_review=True, run_security_review=False)
        return Dispatch(Mode.DUAL_REVIEW, run_code_review=True, run_security_review=True)

    if inputs.automatic_review:
        return Dispatch(Mode.REVIEW, run_code_review=True, run_security_review=False)

    if inputs.automatic_security_review:
        if prior_security_review():
            return Dispatch(Mode.SKIP, reason=SECURITY_REVIEW_EXISTS)
        return Dispatch(Mode.SECURITY_REVIEW, run_code_review=False, run_security_review=True)

    if isinstance(command, ParsedCommand):
        command = command.command
    if command is None:
        command = Command.DEFAULT
    try:
        command = Command(command)
    except ValueError as e:
        raise InvariantViolation(f"Unexpected command: {command}") from e
    return COMMAND_DISPATCH[command]

def create_comment_body(
    server_url: str,
    owner: str,
    repo: str,
    run_id: str,
    branch_name: Optional[str] = None,
    security: bool = False
) -> str:
    """Initial body of the tracking comment"""
    message = "Droid is running a security check…" if security else "Droid is working…"
    job_link = f"[View job run]({server_url}/{owner}/{repo}/actions/runs/{run_id})"
    branch_link = f"\n[View branch]({server_url}/{owner}/{repo}/tree/{branch_name})" if branch_name else ""
    return f"{message}\n\n{job_link}{branch_link}"

def create_tracking_comment(context: NormalizedContext, env: RunEnvironment, dispatch: Dispatch) -> int:
    repository = context.repository
    branch_name = (
        security_scan_branch(context, env.today()) if dispatch.mode == Mode.SECURITY_SCAN else None
    )
    security = dispatch.mode.is_security or context.inputs.automatic_security_review
    body = create_comment_body(
        context.inputs.github_server_url,
        repository.owner,
        repository.repo,
        context.run_id,
        branch_name=branch_name,
        security=security,
    )
    return env.github.create_comment(repository.owner, repository.repo, context.entity_number, body)

def prepare_tag_execution(context: NormalizedContext, env: RunEnvironment) -> PrepareResult:
    """Decide the mode of a triggered run and prepare it"""
    check_human_actor(env.github, context)

    parsed = extract_command_from_context(context)
    repository = context.repository

    def prior_security_review() -> bool:
        comments = env.github.list_issue_comments(repository.owner, repository.repo, context.entity_number)
        return has_prior_run(comments)

    dispatch = decide_mode(context, parsed, prior_security_review)
    logger.info(
        "Dispatched run",
        extra={
            'mode': dispatch.mode.value,
            'command': parsed.command.value if parsed else None,
            'repository': repository.full_name,
            'entity_number': context.entity_number,
        }
    )

    if dispatch.mode == Mode.SKIP:
        logger.info("Skipping run: %s", dispatch.reason)
        return PrepareResult.skip(dispatch.reason or "")

    if dispatch.mode.requires_pr and not context.is_pr:
        raise ConfigurationError(f"{dispatch.mode.value} is only supported on pull requests")

    comment_id = create_tracking_comment(context, env, dispatch)
    env.outputs.set_output("droid_comment_id", comment_id)
    if context.is_pr:
        env.outputs.set_output("review_pr_number", context.entity_number)

    if dispatch.run_code_review is not None:
        env.outputs.set_output("run_code_review", dispatch.run_code_review)
    if dispatch.run_security_review is not None:
        env.outputs.set_output("run_security_review", dispatch.run_security_review)

    if dispatch.mode == Mode.DUAL_REVIEW:
        return PrepareResult(
            branch_info=BranchInfo(base_branch="", current_branch=""),
            mode=Mode.DUAL_REVIEW,
            comment_id=comment_id,
        )

    preparer = PREPARERS.get(dispatch.mode)
    if preparer is None:
        raise InvariantViolation(f"No preparer for mode {dispatch.mode.value}")
    return preparer(context, env, comment_id)
