"""Prompt artifact rendering"""

import logging
import os
from typing import Iterable, List, Optional

from droidprep.core.materializer import prompts_dir
from droidprep.core.outputs import ActionOutputs
from droidprep.core.templates import PromptTemplate
from droidprep.core.types.event_data import PreparedContext, build_event_data
from droidprep.core.types.events import NormalizedContext
from droidprep.core.types.pipeline import PRBranchData, ReviewArtifacts

logger = logging.getLogger(__name__)

PROMPT_FILENAME = "droid-prompt.txt"

BASE_ALLOWED_TOOLS = ["Execute", "Edit", "Create", "Read", "Glob", "Grep", "LS"]
BASE_DISALLOWED_TOOLS = ["WebSearch", "FetchUrl"]
COMMENT_TOOL = "github_comment___update_droid_comment"

def build_allowed_tools_string(custom_tools: Iterable[str] = ()) -> str:
    tools = list(BASE_ALLOWED_TOOLS)
    tools.append(COMMENT_TOOL)
    tools.extend(tool for tool in custom_tools if tool)
    return ",".join(dict.fromkeys(tools))

def build_disallowed_tools_string(allowed_tools: Iterable[str] = (), custom_disallowed: Iterable[str] = ()) -> str:
    allowed = set(allowed_tools)
    disallowed = [tool for tool in BASE_DISALLOWED_TOOLS if tool not in allowed]
    disallowed.extend(tool for tool in custom_disallowed if tool)
    return ",".join(disallowed)

def _trigger_details(context: NormalizedContext):
    """Comment id, text and author of the event that started the run"""
    payload = context.payload
    if context.event_name in ("issue_comment", "pull_request_review_comment"):
        comment = payload.get("comment") or {}
        comment_id = comment.get("id")
        return (
            str(comment_id) if comment_id is not None else None,
            comment.get("body") or "",
            (comment.get("user") or {}).get("login"),
        )
    if context.event_name == "pull_request_review":
        review = payload.get("review") or {}
        return None, review.get("body") or "", (review.get("user") or {}).get("login")
    if context.event_name == "issues":
        return None, None, ((payload.get("issue") or {}).get("user") or {}).get("login")
    if context.event_name == "pull_request":
        return None, None, ((payload.get("pull_request") or {}).get("user") or {}).get("login")
    return None, None, None

def prepare_context(
    context: NormalizedContext,
    droid_comment_id: Optional[str] = None,
    base_branch: Optional[str] = None,
    droid_branch: Optional[str] = None,
    pr_branch_data: Optional[PRBranchData] = None,
    review_artifacts: Optional[ReviewArtifacts] = None
) -> PreparedContext:
    """Build the fully resolved context handed to a template"""
    comment_id, comment_body, trigger_username = _trigger_details(context)
    event_data = build_event_data(
        context,
        comment_id=comment_id,
        comment_body=comment_body,
        base_branch=base_branch,
        droid_branch=droid_branch,
    )
    return PreparedContext(
        repository=context.repository.full_name,
        trigger_phrase=context.inputs.trigger_phrase or "@droid",
        event_data=event_data,
        droid_comment_id=droid_comment_id,
        trigger_username=trigger_username,
        droid_branch=droid_branch,
        github_context=context,
        pr_branch_data=pr_branch_data,
        review_artifacts=review_artifacts,
    )

class PromptWriter:
    """Renders a template and persists the prompt for the agent step"""

    def __init__(self, runner_temp: str, outputs: ActionOutputs):
        self.runner_temp = runner_temp
        self.outputs = outputs

    @property
    def prompt_path(self) -> str:
        return os.path.join(prompts_dir(self.runner_temp), PROMPT_FILENAME)

    def write(
        self,
        prepared: PreparedContext,
        template: PromptTemplate,
        allowed_tools: Optional[List[str]] = None
    ) -> str:
        """Render, persist and export tool lists; returns the prompt path"""
        content = template(prepared)

        os.makedirs(prompts_dir(self.runner_temp), exist_ok=True)
        with open(self.prompt_path, "w", encoding="utf-8") as handle:
            handle.write(content)

        custom_tools = allowed_tools or []
        self.outputs.export_variable("ALLOWED_TOOLS", build_allowed_tools_string(custom_tools))
        self.outputs.export_variable("DISALLOWED_TOOLS", build_disallowed_tools_string(custom_tools))

        logger.info(
            "Wrote prompt",
            extra={'path': self.prompt_path, 'chars': len(content), 'repository': prepared.repository}
        )
        return self.prompt_path
