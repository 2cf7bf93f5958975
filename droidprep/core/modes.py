"""Per-mode preparation once a mode has been dispatched"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Optional

from droidprep.core.exceptions import ConfigurationError
from droidprep.core.materializer import GitRunner, ReviewMaterializer
from droidprep.core.outputs import ActionOutputs
from droidprep.core.prompt import PromptWriter, prepare_context
from droidprep.core.templates import (
    TEMPLATES,
    generate_review_candidates_prompt,
    generate_security_report_prompt,
)
from droidprep.core.tools import compose
from droidprep.core.types.events import NormalizedContext
from droidprep.core.types.pipeline import BranchInfo, Mode, PRBranchData, PrepareResult

logger = logging.getLogger(__name__)

@dataclass
class RunEnvironment:
    """Collaborators shared by every preparer of one run"""
    github: object
    github_token: str
    outputs: ActionOutputs
    git: GitRunner = field(default_factory=GitRunner)
    today: Callable[[], date] = date.today
    probe_actions: bool = True

    def materializer(self, context: NormalizedContext) -> ReviewMaterializer:
        return ReviewMaterializer(self.git, self.github, context.inputs.runner_temp)

    def prompt_writer(self, context: NormalizedContext) -> PromptWriter:
        return PromptWriter(context.inputs.runner_temp, self.outputs)

def security_scan_branch(context: NormalizedContext, today: date) -> str:
    """Working branch of a full security scan"""
    return f"{context.inputs.branch_prefix}security-report-{today.isoformat()}"

def security_scan_base(context: NormalizedContext) -> str:
    return context.inputs.base_branch or context.repository.default_branch or "main"

def _require_pr(mode: Mode, context: NormalizedContext) -> None:
    if not context.is_pr:
        raise ConfigurationError(f"{mode.value} is only supported on pull requests")

def _finish(
    mode: Mode,
    context: NormalizedContext,
    env: RunEnvironment,
    comment_id: Optional[int],
    prepared,
    branch_info: BranchInfo,
    template=None
) -> PrepareResult:
    """Compose tools, write the prompt and emit the launch outputs"""
    owner = context.repository.owner
    repo = context.repository.repo
    composition = compose(
        mode,
        context,
        env.github_token,
        droid_comment_id=str(comment_id) if comment_id else None,
        can_read_actions=(
            (lambda token: env.github.can_read_actions(owner, repo, token))
            if env.probe_actions else None
        ),
        warn=env.outputs.warning,
    )

    env.prompt_writer(context).write(
        prepared, template or TEMPLATES[mode], list(composition.allowed_tools)
    )
    env.outputs.export_variable("DROID_EXEC_RUN_TYPE", mode.run_type)
    if mode.is_security:
        env.outputs.set_output("install_security_skills", True)
    env.outputs.set_output("droid_args", composition.droid_args)
    env.outputs.set_output("mcp_tools", composition.mcp_tools)

    logger.info(
        "Prepared run",
        extra={'mode': mode.value, 'repository': context.repository.full_name,
               'entity_number': context.entity_number}
    )
    return PrepareResult(
        branch_info=branch_info,
        mcp_tools=composition.mcp_tools,
        mode=mode,
        comment_id=comment_id,
    )

def prepare_fill(context: NormalizedContext, env: RunEnvironment, comment_id: Optional[int]) -> PrepareResult:
    """Prepare a pull request description rewrite"""
    _require_pr(Mode.FILL, context)
    owner, repo = context.repository.owner, context.repository.repo
    branch_data = env.github.get_pr_branch_data(owner, repo, context.entity_number)

    prepared = prepare_context(
        context,
        droid_comment_id=str(comment_id) if comment_id else None,
        base_branch=branch_data.base_ref_name,
        pr_branch_data=branch_data,
    )
    branch_info = BranchInfo(
        base_branch=branch_data.base_ref_name,
        current_branch=branch_data.head_ref_name,
    )
    return _finish(Mode.FILL, context, env, comment_id, prepared, branch_info)

def _prepare_with_diff(
    mode: Mode,
    context: NormalizedContext,
    env: RunEnvironment,
    comment_id: Optional[int],
    droid_branch_from_head: bool = False,
    template=None
) -> PrepareResult:
    _require_pr(mode, context)
    owner, repo = context.repository.owner, context.repository.repo
    number = context.entity_number

    materializer = env.materializer(context)
    # The comment fetch runs alongside the branch data query
    with ThreadPoolExecutor(max_workers=1) as executor:
        comments_future = executor.submit(materializer.fetch_comments, owner, repo, number)
        branch_data: PRBranchData = env.github.get_pr_branch_data(owner, repo, number)
        artifacts = materializer.materialize(
            owner, repo, number, branch_data, comments_future=comments_future
        )

    droid_branch = branch_data.head_ref_name if droid_branch_from_head else None
    prepared = prepare_context(
        context,
        droid_comment_id=str(comment_id) if comment_id else None,
        base_branch=branch_data.base_ref_name,
        droid_branch=droid_branch,
        pr_branch_data=branch_data,
        review_artifacts=artifacts,
    )
    branch_info = BranchInfo(
        base_branch=branch_data.base_ref_name,
        current_branch=branch_data.head_ref_name,
        droid_branch=droid_branch,
    )
    return _finish(mode, context, env, comment_id, prepared, branch_info, template=template)

def prepare_review(context: NormalizedContext, env: RunEnvironment, comment_id: Optional[int]) -> PrepareResult:
    """Prepare a code review of a pull request

    With the validator enabled the review only records candidate comments
    for the later validator run.
    """
    template = generate_review_candidates_prompt if context.inputs.review_use_validator else None
    return _prepare_with_diff(Mode.REVIEW, context, env, comment_id, template=template)

def prepare_security_review(context: NormalizedContext, env: RunEnvironment, comment_id: Optional[int]) -> PrepareResult:
    """Prepare a security review of a pull request"""
    return _prepare_with_diff(Mode.SECURITY_REVIEW, context, env, comment_id)

def prepare_review_validator(context: NormalizedContext, env: RunEnvironment, comment_id: Optional[int]) -> PrepareResult:
    """Prepare validation of candidate review comments"""
    return _prepare_with_diff(
        Mode.REVIEW_VALIDATOR, context, env, comment_id, droid_branch_from_head=True
    )

def prepare_security_scan(context: NormalizedContext, env: RunEnvironment, comment_id: Optional[int]) -> PrepareResult:
    """Prepare a full repository security scan

    No pull request data is resolved; the scan works on its own branch.
    """
    branch_name = security_scan_branch(context, env.today())
    base_branch = security_scan_base(context)

    prepared = prepare_context(
        context,
        droid_comment_id=str(comment_id) if comment_id else None,
        base_branch=base_branch,
        droid_branch=branch_name,
    )
    branch_info = BranchInfo(
        base_branch=base_branch,
        current_branch=branch_name,
        droid_branch=branch_name,
    )
    return _finish(
        Mode.SECURITY_SCAN, context, env, comment_id, prepared, branch_info,
        template=lambda ctx: generate_security_report_prompt(ctx, branch_name),
    )

PREPARERS: Dict[Mode, Callable[[NormalizedContext, RunEnvironment, Optional[int]], PrepareResult]] = {
    Mode.FILL: prepare_fill,
    Mode.REVIEW: prepare_review,
    Mode.SECURITY_REVIEW: prepare_security_review,
    Mode.SECURITY_SCAN: prepare_security_scan,
    Mode.REVIEW_VALIDATOR: prepare_review_validator,
}
