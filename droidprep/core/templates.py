"""Prompt templates keyed by mode

Templates are pure: they receive a PreparedContext and return text. Large
inputs such as the diff are referenced by path, never inlined.
"""

import os
import re
from typing import Callable, Dict, Optional

from droidprep.core.materializer import COMMENTS_FILENAME, DIFF_FILENAME, prompts_dir
from droidprep.core.types.event_data import PreparedContext
from droidprep.core.types.pipeline import Mode

CANDIDATES_FILENAME = "review_candidates.json"
VALIDATED_FILENAME = "review_validated.json"

REPORT_DATE_PATTERN = re.compile(r"security-report-(\d{4}-\d{2}-\d{2})$")

def _scratch_path(context: PreparedContext, filename: str) -> str:
    if context.github_context is not None:
        return os.path.join(prompts_dir(context.github_context.inputs.runner_temp), filename)
    return f"$RUNNER_TEMP/droid-prompts/{filename}"

def _candidates_path(context: PreparedContext) -> str:
    inputs = context.github_context.inputs if context.github_context is not None else None
    if inputs is not None and inputs.review_candidates_path:
        return inputs.review_candidates_path
    return _scratch_path(context, CANDIDATES_FILENAME)

def _pr_refs(context: PreparedContext) -> Dict[str, str]:
    branch_data = context.pr_branch_data
    return {
        "head_ref": branch_data.head_ref_name if branch_data else "unknown",
        "head_sha": branch_data.head_ref_oid if branch_data else "unknown",
        "base_ref": (
            getattr(context.event_data, "base_branch", None)
            or (branch_data.base_ref_name if branch_data else None)
            or "unknown"
        ),
    }

def _artifact_paths(context: PreparedContext) -> Dict[str, str]:
    artifacts = context.review_artifacts
    return {
        "diff": artifacts.diff_path if artifacts else _scratch_path(context, DIFF_FILENAME),
        "comments": artifacts.comments_path if artifacts else _scratch_path(context, COMMENTS_FILENAME),
    }

def _security_settings(context: PreparedContext) -> Dict[str, str]:
    inputs = context.github_context.inputs if context.github_context is not None else None
    return {
        "threshold": inputs.security_severity_threshold if inputs else "medium",
        "block_critical": str(inputs.security_block_on_critical if inputs else True).lower(),
        "block_high": str(inputs.security_block_on_high if inputs else False).lower(),
        "notify_team": inputs.security_notify_team if inputs else "",
    }

def generate_fill_prompt(context: PreparedContext) -> str:
    """Prompt for rewriting a pull request description"""
    number = context.entity_number
    repo = context.repository
    return f"""You are writing the description of pull request #{number} in {repo}.
The gh CLI is installed and authenticated via GH_TOKEN.

Gather context:
- gh pr view {number} --repo {repo} --json title,body,comments,reviews
- gh pr diff {number} --repo {repo}
- Look for a pull request template under .github/ or docs/ and follow it when present.

Write the description:
- Only state what the diff and the conversation confirm.
- Keep ticket references, links and notes the author already wrote.
- Remove the "{context.trigger_phrase} fill" request from the body.
- Without a template use the sections Summary, Changes, Testing and Related Issues.
- Mark anything you cannot verify as "[To be filled by author]".

Finish by calling github_pr___update_pr_description with the full Markdown body.
If a command fails, report the failure in the tracking comment instead of guessing.
"""

def generate_review_prompt(context: PreparedContext) -> str:
    """Prompt for an automated code review"""
    number = context.entity_number
    repo = context.repository
    refs = _pr_refs(context)
    paths = _artifact_paths(context)
    return f"""You are reviewing pull request #{number} in {repo}.
The gh CLI is installed and authenticated via GH_TOKEN.

Context:
- Repository: {repo}
- PR number: {number}
- Head ref: {refs['head_ref']}
- Head SHA: {refs['head_sha']}
- Base ref: {refs['base_ref']}
- Diff against the merge base: {paths['diff']}
- Existing comments (issueComments, reviewComments): {paths['comments']}

Review the diff and report only clear, high-confidence problems:
- correctness and boundary bugs
- missing validation or misuse of a contract
- concurrency hazards and resource leaks
- regressions against existing behavior or tests

Rules:
- At most 10 inline comments, placed on changed lines via github_inline_comment___create_inline_comment.
- Skip style and preference remarks.
- Do not repeat anything already raised in the existing comments; reply to or resolve the old thread instead.
- Submit the review with github_pr___submit_review and summarize it in the tracking comment.
"""

def generate_review_candidates_prompt(context: PreparedContext) -> str:
    """Prompt for the first pass of a validated review

    Candidate comments are written to a JSON file for the validator pass;
    nothing is posted to the pull request.
    """
    number = context.entity_number
    repo = context.repository
    refs = _pr_refs(context)
    paths = _artifact_paths(context)
    candidates = _candidates_path(context)
    return f"""You are reviewing pull request #{number} in {repo} and recording candidate comments.

Context:
- Repository: {repo}
- PR number: {number}
- Head ref: {refs['head_ref']}
- Head SHA: {refs['head_sha']}
- Base ref: {refs['base_ref']}
- Diff against the merge base: {paths['diff']}
- Existing comments (issueComments, reviewComments): {paths['comments']}

The PR head is checked out. Review every modified file and keep only clear,
high-confidence problems: correctness and boundary bugs, missing error handling,
injection and auth issues, concurrency hazards and resource leaks. Skip anything
already raised in the existing comments and anything stylistic.

Write the result to {candidates} using this schema:

{{
  "version": 1,
  "meta": {{"repo": "{repo}", "prNumber": {number}, "headSha": "{refs['head_sha']}",
           "baseRef": "{refs['base_ref']}", "generatedAt": "<ISO 8601 timestamp>"}},
  "comments": [
    {{"path": "src/app.py", "body": "[P1] Title\\n\\nOne paragraph.", "line": 42,
     "startLine": null, "side": "RIGHT", "commit_id": "{refs['head_sha']}"}}
  ],
  "reviewSummary": {{"body": "1-3 sentence overall assessment"}}
}}

Each body starts with a priority tag [P0], [P1] or [P2]. startLine is null for
single-line comments. side is "LEFT" only for removed code.

Do not post to GitHub and do not call any pull request tools. Do not modify any
file other than {candidates}.
"""

def generate_security_review_prompt(context: PreparedContext) -> str:
    """Prompt for a security review of a pull request"""
    number = context.entity_number
    repo = context.repository
    refs = _pr_refs(context)
    paths = _artifact_paths(context)
    settings = _security_settings(context)
    notify = (
        f"- Mention {settings['notify_team']} when a critical finding is reported.\n"
        if settings["notify_team"] else ""
    )
    return f"""You are performing a security review of pull request #{number} in {repo}.
The gh CLI is installed and authenticated via GH_TOKEN.

Context:
- Repository: {repo}
- PR number: {number}
- Head ref: {refs['head_ref']}
- Head SHA: {refs['head_sha']}
- Base ref: {refs['base_ref']}
- Diff against the merge base: {paths['diff']}
- Existing comments (issueComments, reviewComments): {paths['comments']}

Configuration:
- Severity threshold: {settings['threshold']} (report findings at or above this level only)
- Request changes on critical findings: {settings['block_critical']}
- Request changes on high findings: {settings['block_high']}
{notify}
Look for injection, broken authentication or authorization, secrets in code,
unsafe deserialization, path traversal, SSRF and insecure cryptography
introduced by this diff. Each finding needs a severity, the affected line,
an exploit scenario and a concrete fix.

Post findings inline with github_inline_comment___create_inline_comment, then
submit the review with github_pr___submit_review. Start the tracking comment
with the heading "## Security Review Summary" followed by a table of findings.
"""

def generate_security_report_prompt(context: PreparedContext, branch_name: Optional[str] = None) -> str:
    """Prompt for a full-repository security scan"""
    repo = context.repository
    settings = _security_settings(context)
    branch = branch_name or context.droid_branch or "unknown"
    match = REPORT_DATE_PATTERN.search(branch)
    report_date = match.group(1) if match else "YYYY-MM-DD"
    return f"""You are running a full security scan of {repo}.
The gh CLI is installed and authenticated via GH_TOKEN.

Configuration:
- Scope: entire repository
- Severity threshold: {settings['threshold']}
- Report branch: {branch}

Scan every tracked source file, skipping vendored and generated directories.
For each finding record severity, file, line, description, exploit scenario
and remediation.

Write the report to .factory/security/reports/security-report-{report_date}.md, commit
it on {branch} and open a pull request titled "Security scan report {report_date}".
Update the tracking comment with counts per severity and a link to that pull request.
"""

def generate_review_validator_prompt(context: PreparedContext) -> str:
    """Prompt for validating candidate review comments"""
    number = context.entity_number
    repo = context.repository
    refs = _pr_refs(context)
    paths = _artifact_paths(context)
    candidates = _candidates_path(context)
    validated = _scratch_path(context, VALIDATED_FILENAME)
    return f"""You are validating candidate review comments for pull request #{number} in {repo}.

Context:
- Repository: {repo}
- PR number: {number}
- Head ref: {refs['head_ref']}
- Head SHA: {refs['head_sha']}
- Base ref: {refs['base_ref']}

Inputs:
- Candidate comments: {candidates}
- Diff against the merge base: {paths['diff']}
- Existing comments: {paths['comments']}

For every candidate, check it against the code and the diff. Mark it
"approved" when it is correct, specific and actionable; otherwise mark it
"rejected" with a one-line reason. Duplicates of existing comments are rejected.

Write the results to {validated} as a JSON list in candidate order, then
submit only the approved comments with github_pr___submit_review.
"""

PromptTemplate = Callable[[PreparedContext], str]

TEMPLATES: Dict[Mode, PromptTemplate] = {
    Mode.FILL: generate_fill_prompt,
    Mode.REVIEW: generate_review_prompt,
    Mode.SECURITY_REVIEW: generate_security_review_prompt,
    Mode.SECURITY_SCAN: generate_security_report_prompt,
    Mode.REVIEW_VALIDATOR: generate_review_validator_prompt,
}
