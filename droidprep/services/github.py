"""GitHub service integration"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

import requests
from github import (
    Auth,
    Github,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)

from droidprep.core.exceptions import EntityNotFound, HostError, TransientHostError
from droidprep.core.types.pipeline import PRBranchData
from droidprep.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

T = TypeVar("T")

PR_BRANCH_QUERY = """
query($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      baseRefName
      headRefName
      headRefOid
    }
  }
}
"""

def graphql_url(api_url: str) -> str:
    """GraphQL endpoint for a REST API base URL"""
    api_url = api_url.rstrip("/")
    if api_url.endswith("/api/v3"):
        return api_url[: -len("/v3")] + "/graphql"
    return f"{api_url}/graphql"

def _is_transient_status(status: Optional[int]) -> bool:
    return status is not None and (status >= 500 or status == 429)

class GitHubClient:
    """Client for the GitHub operations a preparation run needs"""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        session: Optional[requests.Session] = None,
        client: Optional[Github] = None,
        retry_options: Optional[Dict[str, Any]] = None
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self._session = session or requests.Session()
        self._client = client
        self._retry_options = retry_options or {}

    @property
    def client(self) -> Github:
        """PyGithub client, created on first use"""
        if self._client is None:
            self._client = Github(
                auth=Auth.Token(self.token),
                base_url=self.api_url,
                retry=None
            )
        return self._client

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token or self.token}",
            "Accept": "application/vnd.github+json",
        }

    def _call(
        self,
        description: str,
        operation: Callable[[], T],
        not_found: Optional[Tuple[str, int]] = None
    ) -> T:
        """Run a read operation with error classification and backoff"""
        def attempt() -> T:
            try:
                return operation()
            except UnknownObjectException as e:
                if not_found:
                    raise EntityNotFound(*not_found) from e
                raise HostError(f"Failed to {description}: {str(e)}") from e
            except RateLimitExceededException as e:
                raise TransientHostError(f"Rate limited while trying to {description}") from e
            except GithubException as e:
                if _is_transient_status(e.status):
                    raise TransientHostError(f"Failed to {description}: {str(e)}") from e
                raise HostError(f"Failed to {description}: {str(e)}") from e
            except requests.RequestException as e:
                raise TransientHostError(f"Failed to {description}: {str(e)}") from e

        return retry_with_backoff(attempt, **self._retry_options)

    def get_pr_branch_data(self, owner: str, repo: str, number: int) -> PRBranchData:
        """Fetch base/head refs of a pull request with a single query"""
        def query() -> PRBranchData:
            response = self._session.post(
                graphql_url(self.api_url),
                json={
                    "query": PR_BRANCH_QUERY,
                    "variables": {"owner": owner, "repo": repo, "number": number},
                },
                headers=self._headers(),
                timeout=30,
            )
            if _is_transient_status(response.status_code):
                raise TransientHostError(
                    f"GraphQL request failed with status {response.status_code}"
                )
            if response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0":
                raise TransientHostError("GraphQL rate limit exhausted")
            if response.status_code >= 400:
                raise HostError(
                    f"Failed to fetch PR branch data for PR #{number}: HTTP {response.status_code}"
                )

            body = response.json()
            errors = body.get("errors") or []
            if any(error.get("type") == "NOT_FOUND" for error in errors):
                raise EntityNotFound("PR", number)
            if errors:
                raise HostError(
                    f"Failed to fetch PR branch data for PR #{number}: {errors[0].get('message')}"
                )

            pull_request = ((body.get("data") or {}).get("repository") or {}).get("pullRequest")
            if not pull_request:
                raise EntityNotFound("PR", number)

            return PRBranchData(
                base_ref_name=pull_request["baseRefName"],
                head_ref_name=pull_request["headRefName"],
                head_ref_oid=pull_request["headRefOid"],
            )

        return self._call("fetch PR branch data", query)

    def list_issue_comments(self, owner: str, repo: str, number: int) -> List[Dict[str, Any]]:
        """All issue-level comments of an issue or pull request"""
        def fetch() -> List[Dict[str, Any]]:
            issue = self.client.get_repo(f"{owner}/{repo}").get_issue(number)
            return [comment.raw_data for comment in issue.get_comments()]

        return self._call("list issue comments", fetch, not_found=("Issue", number))

    def list_review_comments(self, owner: str, repo: str, number: int) -> List[Dict[str, Any]]:
        """All inline review comments of a pull request"""
        def fetch() -> List[Dict[str, Any]]:
            pull = self.client.get_repo(f"{owner}/{repo}").get_pull(number)
            return [comment.raw_data for comment in pull.get_review_comments()]

        return self._call("list review comments", fetch, not_found=("PR", number))

    def get_user_type(self, login: str) -> str:
        """Account type of a user ("User", "Bot" or "Organization")"""
        return self._call("look up actor", lambda: self.client.get_user(login).type)

    def create_comment(self, owner: str, repo: str, number: int, body: str) -> int:
        """Post an issue comment and return its id

        Writes are not retried.
        """
        try:
            issue = self.client.get_repo(f"{owner}/{repo}").get_issue(number)
            comment = issue.create_comment(body)
        except UnknownObjectException as e:
            raise EntityNotFound("Issue", number) from e
        except GithubException as e:
            raise HostError(f"Failed to create tracking comment: {str(e)}") from e
        logger.info(
            "Created tracking comment",
            extra={'comment_id': comment.id, 'repository': f"{owner}/{repo}", 'number': number}
        )
        return comment.id

    def can_read_actions(self, owner: str, repo: str, token: Optional[str] = None) -> bool:
        """Probe whether a token may read workflow runs (actions: read)"""
        try:
            response = self._session.get(
                f"{self.api_url}/repos/{owner}/{repo}/actions/runs",
                params={"per_page": 1},
                headers=self._headers(token),
                timeout=30,
            )
        except requests.RequestException as e:
            logger.debug("Failed to check actions permission: %s", e)
            return False

        if response.status_code == 200:
            return True
        logger.debug(
            "Actions permission probe returned HTTP %s", response.status_code
        )
        return False
