"""Standardized event types for droidprep"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from droidprep.config import ActionInputs

SUPPORTED_EVENTS = (
    "issue_comment",
    "issues",
    "pull_request",
    "pull_request_review",
    "pull_request_review_comment",
)

@dataclass(frozen=True)
class RepositoryRef:
    """Repository information for the event"""
    owner: str
    repo: str
    full_name: str
    default_branch: str = ""

@dataclass(frozen=True)
class RawEvent:
    """Webhook payload as delivered by the host, plus delivery metadata"""
    event_name: str
    payload: Dict[str, Any]
    actor: str = ""
    run_id: str = ""

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "RawEvent":
        """Load the triggering event of a workflow run"""
        env = os.environ if env is None else env
        payload: Dict[str, Any] = {}
        event_path = env.get("GITHUB_EVENT_PATH")
        if event_path and os.path.exists(event_path):
            with open(event_path, encoding="utf-8") as handle:
                payload = json.load(handle)
        return cls(
            event_name=env.get("GITHUB_EVENT_NAME", ""),
            payload=payload,
            actor=env.get("GITHUB_ACTOR", ""),
            run_id=env.get("GITHUB_RUN_ID", ""),
        )

@dataclass(frozen=True)
class NormalizedContext:
    """Unified view of what happened, built once per run"""
    event_name: str
    event_action: Optional[str]
    repository: RepositoryRef
    actor: str
    entity_number: int
    is_pr: bool
    inputs: ActionInputs
    payload: Dict[str, Any] = field(repr=False)
    run_id: str = ""
