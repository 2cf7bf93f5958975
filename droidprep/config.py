"""Configuration management for droidprep"""

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from droidprep.core.exceptions import ConfigurationError

# Values from a local .env file become os.getenv defaults below
load_dotenv()

SEVERITY_LEVELS = ("low", "medium", "high", "critical")

def _flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() == "true"

@dataclass
class Config:
    """Base configuration for the webhook triage service."""
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-key-change-me")
    GITHUB_WEBHOOK_SECRET: str = os.getenv("GITHUB_WEBHOOK_SECRET", "")
    RATELIMIT_STORAGE_URI: str = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    WEBHOOK_RATE_LIMIT: str = os.getenv("WEBHOOK_RATE_LIMIT", "100/minute")
    METRICS_FILE: str = os.getenv("DROIDPREP_METRICS_FILE", "")

class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG: bool = True

class ProductionConfig(Config):
    """Production configuration."""
    DEBUG: bool = False

class TestingConfig(Config):
    """Testing configuration."""
    TESTING: bool = True
    GITHUB_WEBHOOK_SECRET: str = "test-secret"

@dataclass(frozen=True)
class ActionInputs:
    """Inputs resolved once at the pipeline boundary.

    Every component receives this record instead of reading the process
    environment on its own.
    """
    trigger_phrase: str = "@droid"
    assignee_trigger: str = ""
    label_trigger: str = "droid"
    base_branch: str = ""
    branch_prefix: str = "droid/"
    allowed_bots: str = ""
    automatic_review: bool = False
    automatic_security_review: bool = False
    review_use_validator: bool = False
    review_candidates_path: str = ""
    review_model: str = ""
    security_model: str = ""
    reasoning_effort: str = ""
    security_severity_threshold: str = "medium"
    security_block_on_critical: bool = True
    security_block_on_high: bool = False
    security_notify_team: str = ""
    droid_args: str = ""
    default_workflow_token: str = ""
    runner_temp: str = "/tmp"
    action_path: str = "."
    github_api_url: str = "https://api.github.com"
    github_server_url: str = "https://github.com"

    def __post_init__(self):
        if self.security_severity_threshold not in SEVERITY_LEVELS:
            raise ConfigurationError(
                f"Invalid security_severity_threshold: {self.security_severity_threshold} "
                f"(expected one of {', '.join(SEVERITY_LEVELS)})"
            )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ActionInputs":
        """Resolve inputs from an environment mapping (defaults to os.environ)"""
        env = os.environ if env is None else env

        def text(name: str, default: str = "") -> str:
            value = env.get(name)
            if value is None or value.strip() == "":
                return default
            return value.strip()

        return cls(
            trigger_phrase=text("TRIGGER_PHRASE", "@droid"),
            assignee_trigger=text("ASSIGNEE_TRIGGER"),
            label_trigger=text("LABEL_TRIGGER", "droid"),
            base_branch=text("BASE_BRANCH"),
            branch_prefix=text("BRANCH_PREFIX", "droid/"),
            allowed_bots=text("ALLOWED_BOTS"),
            automatic_review=_flag(env.get("AUTOMATIC_REVIEW")),
            automatic_security_review=_flag(env.get("AUTOMATIC_SECURITY_REVIEW")),
            review_use_validator=_flag(env.get("REVIEW_USE_VALIDATOR")),
            review_candidates_path=text("REVIEW_CANDIDATES_PATH"),
            review_model=text("REVIEW_MODEL"),
            security_model=text("SECURITY_MODEL"),
            reasoning_effort=text("REASONING_EFFORT"),
            security_severity_threshold=text("SECURITY_SEVERITY_THRESHOLD", "medium").lower(),
            security_block_on_critical=_flag(env.get("SECURITY_BLOCK_ON_CRITICAL"), True),
            security_block_on_high=_flag(env.get("SECURITY_BLOCK_ON_HIGH"), False),
            security_notify_team=text("SECURITY_NOTIFY_TEAM"),
            droid_args=text("DROID_ARGS"),
            default_workflow_token=text("DEFAULT_WORKFLOW_TOKEN"),
            runner_temp=text("RUNNER_TEMP", "/tmp"),
            action_path=text("GITHUB_ACTION_PATH", "."),
            github_api_url=text("GITHUB_API_URL", "https://api.github.com"),
            github_server_url=text("GITHUB_SERVER_URL", "https://github.com"),
        )

# Input names as exposed by the action, with the defaults used to tell
# explicitly set inputs apart from untouched ones.
INPUT_DEFAULTS: Dict[str, str] = {
    "trigger_phrase": "@droid",
    "assignee_trigger": "",
    "label_trigger": "droid",
    "base_branch": "",
    "branch_prefix": "droid/",
    "allowed_bots": "",
    "droid_args": "",
    "automatic_review": "false",
    "automatic_security_review": "false",
    "review_model": "",
    "security_model": "",
    "reasoning_effort": "",
    "security_severity_threshold": "medium",
    "security_block_on_critical": "true",
    "security_block_on_high": "false",
    "security_notify_team": "",
}

def inputs_presence(all_inputs: Mapping[str, str]) -> Dict[str, bool]:
    """Report which action inputs differ from their defaults"""
    return {
        name: (all_inputs.get(name) or "") != default
        for name, default in INPUT_DEFAULTS.items()
    }

