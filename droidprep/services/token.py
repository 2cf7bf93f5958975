"""GitHub token resolution"""

import logging
import os
from typing import Mapping, Optional

import requests
from github import Auth, GithubException, GithubIntegration

from droidprep.core.exceptions import ConfigurationError, TransientHostError
from droidprep.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

def _installation_token(app_id: str, private_key: str, installation_id: int, api_url: str) -> str:
    try:
        integration = GithubIntegration(
            auth=Auth.AppAuth(app_id, private_key),
            base_url=api_url
        )
        return integration.get_access_token(installation_id).token
    except GithubException as e:
        if e.status is not None and (e.status >= 500 or e.status == 429):
            raise TransientHostError(f"Failed to get installation token: {str(e)}") from e
        raise ConfigurationError(f"Failed to get installation token: {str(e)}") from e
    except requests.RequestException as e:
        raise TransientHostError(f"Failed to get installation token: {str(e)}") from e

def setup_github_token(env: Optional[Mapping[str, str]] = None, **retry_options) -> str:
    """Resolve the token used for host API calls

    Order: explicit override, GitHub App installation token, workflow token.
    """
    env = os.environ if env is None else env

    override = (env.get("OVERRIDE_GITHUB_TOKEN") or "").strip()
    if override:
        logger.info("Using provided GITHUB_TOKEN for authentication")
        return override

    app_id = (env.get("GITHUB_APP_ID") or "").strip()
    private_key = env.get("GITHUB_APP_PRIVATE_KEY") or ""
    installation_id = (env.get("GITHUB_APP_INSTALLATION_ID") or "").strip()
    if app_id and private_key and installation_id:
        if not installation_id.isdigit():
            raise ConfigurationError(
                f"GITHUB_APP_INSTALLATION_ID must be numeric, got {installation_id!r}"
            )
        api_url = env.get("GITHUB_API_URL") or "https://api.github.com"
        logger.info("Requesting installation token", extra={'app_id': app_id})
        return retry_with_backoff(
            lambda: _installation_token(app_id, private_key, int(installation_id), api_url),
            **retry_options
        )

    token = (env.get("GITHUB_TOKEN") or "").strip()
    if token:
        logger.info("Using GITHUB_TOKEN from the workflow")
        return token

    raise ConfigurationError(
        "No GitHub token available. Provide github_token, GitHub App credentials or GITHUB_TOKEN."
    )
