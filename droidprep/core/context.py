"""Normalization of raw webhook events into a single context shape"""

import logging
from typing import Any, Dict, Tuple

from droidprep.config import ActionInputs
from droidprep.core.exceptions import MissingPayloadField, UnsupportedEventKind
from droidprep.core.types.events import (
    SUPPORTED_EVENTS,
    NormalizedContext,
    RawEvent,
    RepositoryRef,
)

logger = logging.getLogger(__name__)

# Payload sub-objects each event kind must carry
REQUIRED_FIELDS: Dict[str, Tuple[str, ...]] = {
    "issue_comment": ("issue", "comment"),
    "issues": ("issue",),
    "pull_request": ("pull_request",),
    "pull_request_review": ("pull_request", "review"),
    "pull_request_review_comment": ("pull_request", "comment"),
}

def _require(payload: Dict[str, Any], event_name: str, name: str) -> Dict[str, Any]:
    value = payload.get(name)
    if not isinstance(value, dict):
        raise MissingPayloadField(event_name, name)
    return value

def _extract_repository(payload: Dict[str, Any], event_name: str) -> RepositoryRef:
    repo = _require(payload, event_name, "repository")
    owner = (repo.get("owner") or {}).get("login")
    name = repo.get("name")
    if not owner or not name:
        raise MissingPayloadField(event_name, "repository.owner.login")
    return RepositoryRef(
        owner=owner,
        repo=name,
        full_name=repo.get("full_name") or f"{owner}/{name}",
        default_branch=repo.get("default_branch") or "",
    )

def _extract_entity(payload: Dict[str, Any], event_name: str) -> Tuple[int, bool]:
    if event_name in ("issue_comment", "issues"):
        issue = _require(payload, event_name, "issue")
        return issue.get("number"), bool(issue.get("pull_request"))
    pull_request = _require(payload, event_name, "pull_request")
    return pull_request.get("number"), True

def normalize(raw_event: RawEvent, inputs: ActionInputs) -> NormalizedContext:
    """Convert a raw webhook event into a NormalizedContext"""
    event_name = raw_event.event_name
    if event_name not in SUPPORTED_EVENTS:
        raise UnsupportedEventKind(event_name)

    payload = raw_event.payload or {}
    for name in REQUIRED_FIELDS[event_name]:
        _require(payload, event_name, name)

    repository = _extract_repository(payload, event_name)
    entity_number, is_pr = _extract_entity(payload, event_name)
    if not isinstance(entity_number, int):
        raise MissingPayloadField(event_name, "number")

    actor = raw_event.actor or (payload.get("sender") or {}).get("login", "")

    context = NormalizedContext(
        event_name=event_name,
        event_action=payload.get("action"),
        repository=repository,
        actor=actor,
        entity_number=entity_number,
        is_pr=is_pr,
        inputs=inputs,
        payload=payload,
        run_id=raw_event.run_id,
    )

    logger.info(
        "Normalized %s event",
        event_name,
        extra={
            'repository': repository.full_name,
            'entity_number': entity_number,
            'is_pr': is_pr,
            'action': context.event_action,
            'actor': actor
        }
    )
    return context
