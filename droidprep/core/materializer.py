"""Branch and diff materialization for review-class runs"""

import json
import logging
import os
import subprocess
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from droidprep.core.exceptions import MaterializationError
from droidprep.core.types.pipeline import PRBranchData, ReviewArtifacts

logger = logging.getLogger(__name__)

MAX_DIFF_BYTES = 50 * 1024 * 1024
READ_CHUNK_BYTES = 64 * 1024

PROMPTS_DIRNAME = "droid-prompts"
DIFF_FILENAME = "pr.diff"
COMMENTS_FILENAME = "existing_comments.json"

class GitCommandError(MaterializationError):
    """Raised when a git invocation exits non-zero"""
    def __init__(self, args: List[str], returncode: int, stderr: str = ""):
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"git {' '.join(args)} failed with exit code {returncode}: {stderr.strip()}"
        )

class GitRunner:
    """Runs git in a working tree"""

    def __init__(self, cwd: Optional[str] = None):
        self.cwd = cwd

    def run(self, args: List[str]) -> str:
        """Run git and return its trimmed stdout"""
        try:
            completed = subprocess.run(
                ["git", *args],
                cwd=self.cwd,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise MaterializationError(f"Failed to run git: {str(e)}") from e
        if completed.returncode != 0:
            raise GitCommandError(args, completed.returncode, completed.stderr)
        return completed.stdout.strip()

    def read_bounded(self, args: List[str], limit: int) -> bytes:
        """Run git and return raw stdout, failing once it exceeds limit bytes"""
        try:
            process = subprocess.Popen(
                ["git", *args],
                cwd=self.cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise MaterializationError(f"Failed to run git: {str(e)}") from e

        chunks: List[bytes] = []
        total = 0
        with process:
            while True:
                chunk = process.stdout.read(READ_CHUNK_BYTES)
                if not chunk:
                    break
                total += len(chunk)
                if total > limit:
                    process.kill()
                    raise MaterializationError(
                        f"git {' '.join(args)} output exceeded {limit} bytes"
                    )
                chunks.append(chunk)
            stderr = process.stderr.read().decode("utf-8", errors="replace")
            returncode = process.wait()

        if returncode != 0:
            raise GitCommandError(args, returncode, stderr)
        return b"".join(chunks)

def prompts_dir(runner_temp: str) -> str:
    """Run-scoped scratch directory for prompt artifacts"""
    return os.path.join(runner_temp, PROMPTS_DIRNAME)

class ReviewMaterializer:
    """Produces the diff and existing-comment artifacts of a pull request"""

    def __init__(self, git: GitRunner, github, runner_temp: str, max_diff_bytes: int = MAX_DIFF_BYTES):
        self.git = git
        self.github = github
        self.runner_temp = runner_temp
        self.max_diff_bytes = max_diff_bytes

    @property
    def output_dir(self) -> str:
        return prompts_dir(self.runner_temp)

    def ensure_head_checkout(self, pr_number: int, head_oid: str) -> None:
        """Check out the PR head commit rather than a synthetic merge commit"""
        current = self.git.run(["rev-parse", "HEAD"])
        if current == head_oid:
            return

        logger.info(
            "Checking out PR head",
            extra={'pr_number': pr_number, 'head_oid': head_oid, 'current': current}
        )
        self.git.run(["fetch", "origin", f"pull/{pr_number}/head"])
        self.git.run(["checkout", "--detach", head_oid])

        current = self.git.run(["rev-parse", "HEAD"])
        if current != head_oid:
            raise MaterializationError(
                f"HEAD is {current} after checkout, expected {head_oid}"
            )

    def compute_and_store_diff(self, base_ref: str) -> str:
        """Write the merge-base diff against base_ref and return its path"""
        try:
            self.git.run(["fetch", "--unshallow"])
        except GitCommandError as e:
            logger.info("Unshallow skipped: %s", e.stderr.strip() or "repository already complete")

        self.git.run(["fetch", "origin", f"{base_ref}:refs/remotes/origin/{base_ref}"])
        merge_base = self.git.run(["merge-base", "HEAD", f"origin/{base_ref}"])
        if not merge_base:
            raise MaterializationError(f"No merge base between HEAD and origin/{base_ref}")

        diff = self.git.read_bounded(
            ["--no-pager", "diff", f"{merge_base}..HEAD"], self.max_diff_bytes
        )

        os.makedirs(self.output_dir, exist_ok=True)
        diff_path = os.path.join(self.output_dir, DIFF_FILENAME)
        with open(diff_path, "wb") as handle:
            handle.write(diff)

        logger.info(
            "Stored PR diff",
            extra={'path': diff_path, 'bytes': len(diff), 'merge_base': merge_base}
        )
        return diff_path

    def fetch_comments(self, owner: str, repo: str, pr_number: int) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch issue and review comments with two parallel calls"""
        with ThreadPoolExecutor(max_workers=2) as executor:
            issue_future = executor.submit(self.github.list_issue_comments, owner, repo, pr_number)
            review_future = executor.submit(self.github.list_review_comments, owner, repo, pr_number)
            return {
                "issueComments": issue_future.result(),
                "reviewComments": review_future.result(),
            }

    def store_comments(self, comments: Dict[str, List[Dict[str, Any]]]) -> str:
        """Persist existing comments as one JSON document and return its path"""
        os.makedirs(self.output_dir, exist_ok=True)
        comments_path = os.path.join(self.output_dir, COMMENTS_FILENAME)
        with open(comments_path, "w", encoding="utf-8") as handle:
            json.dump(comments, handle, indent=2)
        return comments_path

    def materialize(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        branch_data: PRBranchData,
        comments_future: Optional[Future] = None
    ) -> ReviewArtifacts:
        """Produce both review artifacts; the comment fetch overlaps the git work

        Callers that already started the fetch pass its future in.
        """
        with ThreadPoolExecutor(max_workers=1) as executor:
            if comments_future is None:
                comments_future = executor.submit(self.fetch_comments, owner, repo, pr_number)

            self.ensure_head_checkout(pr_number, branch_data.head_ref_oid)
            diff_path = self.compute_and_store_diff(branch_data.base_ref_name)

            comments = comments_future.result()

        comments_path = self.store_comments(comments)
        logger.info(
            "Materialized review artifacts",
            extra={
                'pr_number': pr_number,
                'issue_comments': len(comments["issueComments"]),
                'review_comments': len(comments["reviewComments"]),
            }
        )
        return ReviewArtifacts(diff_path=diff_path, comments_path=comments_path)
