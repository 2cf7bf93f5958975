"""Read-only dispatch decision for incoming webhooks"""

import logging
from typing import Any, Dict, Optional

from droidprep.config import ActionInputs
from droidprep.core.commands import extract_command_from_context
from droidprep.core.context import normalize
from droidprep.core.dispatcher import decide_mode, has_prior_run
from droidprep.core.trigger import contains_trigger, should_trigger
from droidprep.core.types.events import RawEvent

logger = logging.getLogger(__name__)

def triage(raw_event: RawEvent, inputs: ActionInputs, github=None) -> Dict[str, Any]:
    """Report which mode an event would dispatch to, without any writes

    Without a host client the prior security review lookup is reported as
    unchecked and treated as absent.
    """
    context = normalize(raw_event, inputs)
    result: Dict[str, Any] = {
        "event": context.event_name,
        "action": context.event_action,
        "repository": context.repository.full_name,
        "entity_number": context.entity_number,
        "is_pr": context.is_pr,
        "contains_trigger": contains_trigger(context),
    }

    if not should_trigger(context):
        result.update(status="ignored", triggered=False)
        return result

    prior_check: Dict[str, Optional[str]] = {"state": None}

    def prior_security_review() -> bool:
        if github is None:
            prior_check["state"] = "unchecked"
            return False
        prior_check["state"] = "checked"
        repository = context.repository
        return has_prior_run(
            github.list_issue_comments(repository.owner, repository.repo, context.entity_number)
        )

    parsed = extract_command_from_context(context)
    dispatch = decide_mode(context, parsed, prior_security_review)

    result.update(
        status="triggered",
        triggered=True,
        command=parsed.command.value if parsed else None,
        mode=dispatch.mode.value,
        run_code_review=dispatch.run_code_review,
        run_security_review=dispatch.run_security_review,
        reason=dispatch.reason,
        prior_security_review=prior_check["state"],
    )
    logger.info(
        "Triaged event",
        extra={'repository': context.repository.full_name, 'mode': dispatch.mode.value}
    )
    return result
