"""Decides whether an event should start a run at all"""

import logging
import re
from typing import Optional

from droidprep.core.exceptions import ActorNotAllowed
from droidprep.core.types.events import NormalizedContext

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = {"submitted", "edited"}

def escape_regexp(text: str) -> str:
    """Escape regex metacharacters in a trigger phrase"""
    return re.escape(text)

def contains_phrase(text: Optional[str], phrase: str) -> bool:
    """Match the phrase as a standalone mention, allowing trailing punctuation"""
    if not text or not phrase:
        return False
    pattern = re.compile(r"(^|\s)" + escape_regexp(phrase) + r"([\s.,!?;:]|$)")
    return bool(pattern.search(text))

def contains_trigger(context: NormalizedContext) -> bool:
    """Check the event for an assignee, label or phrase trigger"""
    inputs = context.inputs
    payload = context.payload
    phrase = inputs.trigger_phrase

    if context.event_name == "issues":
        issue = payload.get("issue") or {}
        if context.event_action == "assigned":
            trigger_user = inputs.assignee_trigger.lstrip("@")
            assignee = (payload.get("assignee") or issue.get("assignee") or {}).get("login")
            if trigger_user and assignee == trigger_user:
                logger.info("Issue assigned to trigger user %s", trigger_user)
                return True
            return False

        if context.event_action == "labeled":
            label = (payload.get("label") or {}).get("name")
            if inputs.label_trigger and label == inputs.label_trigger:
                logger.info("Issue labeled with trigger label %s", label)
                return True
            return False

        return contains_phrase(issue.get("body"), phrase) or contains_phrase(issue.get("title"), phrase)

    if context.event_name == "pull_request":
        pull_request = payload.get("pull_request") or {}
        return contains_phrase(pull_request.get("body"), phrase) or contains_phrase(
            pull_request.get("title"), phrase
        )

    if context.event_name == "pull_request_review":
        if context.event_action not in REVIEW_ACTIONS:
            return False
        return contains_phrase((payload.get("review") or {}).get("body"), phrase)

    if context.event_name in ("issue_comment", "pull_request_review_comment"):
        return contains_phrase((payload.get("comment") or {}).get("body"), phrase)

    return False

def should_trigger(context: NormalizedContext) -> bool:
    """Whether a preparation run is warranted for this event"""
    inputs = context.inputs
    if inputs.automatic_review or inputs.automatic_security_review:
        return context.is_pr
    return contains_trigger(context)

def check_human_actor(github, context: NormalizedContext) -> None:
    """Reject bot actors unless they are explicitly allowed"""
    actor_type = github.get_user_type(context.actor)
    if actor_type == "User":
        return

    allowed = [
        name.strip().lower()
        for name in context.inputs.allowed_bots.split(",")
        if name.strip()
    ]
    bot_name = context.actor.lower()
    if bot_name.endswith("[bot]"):
        bot_name = bot_name[: -len("[bot]")]

    if "*" in allowed or bot_name in allowed:
        logger.info("Actor %s is an allowed bot", context.actor)
        return

    raise ActorNotAllowed(context.actor, actor_type)
