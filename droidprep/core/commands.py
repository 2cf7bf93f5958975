"""Command detection for trigger-phrase mentions in comments and bodies

Commands are matched with an ordered rule table against the whole text.
The first rule that matches wins, so specific commands always beat a
bare mention no matter where each appears in the text.
"""

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Pattern, Tuple

from droidprep.core.types.events import NormalizedContext

class Command(str, Enum):
    """Commands understood after the trigger phrase"""
    FILL = "fill"
    REVIEW = "review"
    REVIEW_SECURITY = "review-security"
    SECURITY = "security"
    SECURITY_FULL = "security-full"
    DEFAULT = "default"

@dataclass(frozen=True)
class ParsedCommand:
    command: Command
    raw: str
    location: str = "body"
    timestamp: Optional[str] = None

# Keyword suffixes in precedence order. "review security" resolves to
# plain review because rule 2 is evaluated first.
RULES: Tuple[Tuple[Command, str], ...] = (
    (Command.FILL, r"\s+fill"),
    (Command.REVIEW, r"\s+review"),
    (Command.SECURITY_FULL, r"\s+security\s+--full"),
    (Command.SECURITY, r"\s+security(?:\s|$|[^-\w])"),
    (Command.DEFAULT, r""),
)

def _compile_rules(trigger_phrase: str) -> List[Tuple[Command, Pattern[str]]]:
    trigger = re.escape(trigger_phrase)
    return [
        (command, re.compile(trigger + suffix, re.IGNORECASE))
        for command, suffix in RULES
    ]

def parse_command(text: Optional[str], trigger_phrase: str = "@droid") -> Optional[ParsedCommand]:
    """Detect the command addressed to the trigger phrase in a text"""
    if not text:
        return None

    for command, pattern in _compile_rules(trigger_phrase):
        match = pattern.search(text)
        if match:
            return ParsedCommand(command=command, raw=match.group(0).strip())

    return None

def extract_command_from_context(context: NormalizedContext) -> Optional[ParsedCommand]:
    """Find a command in the text field that belongs to the event kind"""
    payload = context.payload or {}
    trigger = context.inputs.trigger_phrase
    event_name = context.event_name

    if event_name == "pull_request":
        body = (payload.get("pull_request") or {}).get("body")
        parsed = parse_command(body, trigger)
        return replace(parsed, location="body") if parsed else None

    if event_name == "issues":
        body = (payload.get("issue") or {}).get("body")
        parsed = parse_command(body, trigger)
        return replace(parsed, location="body") if parsed else None

    if event_name in ("issue_comment", "pull_request_review_comment"):
        comment = payload.get("comment") or {}
        parsed = parse_command(comment.get("body"), trigger)
        if parsed:
            return replace(parsed, location="comment", timestamp=comment.get("created_at"))
        return None

    if event_name == "pull_request_review":
        review = payload.get("review") or {}
        parsed = parse_command(review.get("body"), trigger)
        if parsed:
            return replace(parsed, location="comment", timestamp=review.get("submitted_at"))
        return None

    return None
