from enum import Enum
from dataclasses import dataclass
from typing import Optional

class RunStage(Enum):
    """Preparation run stages"""
    RECEIVED = "received"
    NORMALIZED = "normalized"
    DISPATCHED = "dispatched"
    PREPARED = "prepared"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"

    def can_transition_to(self, new_stage: 'RunStage') -> bool:
        """Check if transition to new stage is valid"""
        valid_transitions = {
            RunStage.RECEIVED: {RunStage.NORMALIZED, RunStage.FAILED},
            RunStage.NORMALIZED: {RunStage.DISPATCHED, RunStage.SKIPPED, RunStage.FAILED},
            RunStage.DISPATCHED: {RunStage.PREPARED, RunStage.SKIPPED, RunStage.FAILED},
            RunStage.PREPARED: {RunStage.COMPLETED, RunStage.FAILED},
            RunStage.COMPLETED: set(),
            RunStage.SKIPPED: set(),
            RunStage.FAILED: set(),
        }
        return new_stage in valid_transitions.get(self, set())

class Mode(Enum):
    """Terminal states of the mode dispatcher"""
    FILL = "fill"
    REVIEW = "review"
    SECURITY_REVIEW = "security_review"
    SECURITY_SCAN = "security_scan"
    REVIEW_VALIDATOR = "review_validator"
    DUAL_REVIEW = "dual_review"
    SKIP = "skip"

    @property
    def requires_pr(self) -> bool:
        return self not in {Mode.SECURITY_SCAN, Mode.SKIP}

    @property
    def is_security(self) -> bool:
        return self in {Mode.SECURITY_REVIEW, Mode.SECURITY_SCAN}

    @property
    def run_type(self) -> str:
        return {
            Mode.FILL: "droid-fill",
            Mode.REVIEW: "droid-review",
            Mode.SECURITY_REVIEW: "droid-security-review",
            Mode.SECURITY_SCAN: "droid-security-scan",
            Mode.REVIEW_VALIDATOR: "droid-review",
        }.get(self, "")

@dataclass(frozen=True)
class Dispatch:
    """Decision produced by the mode dispatcher"""
    mode: Mode
    run_code_review: Optional[bool] = None
    run_security_review: Optional[bool] = None
    reason: Optional[str] = None

@dataclass(frozen=True)
class PRBranchData:
    """Branch refs of a pull request"""
    base_ref_name: str
    head_ref_name: str
    head_ref_oid: str

@dataclass(frozen=True)
class ReviewArtifacts:
    """Materialized diff and existing-comment files for one run"""
    diff_path: str
    comments_path: str

@dataclass(frozen=True)
class BranchInfo:
    base_branch: str
    current_branch: str
    droid_branch: Optional[str] = None

@dataclass(frozen=True)
class PrepareResult:
    """Outcome of a preparation run"""
    branch_info: BranchInfo
    mcp_tools: str = ""
    mode: Optional[Mode] = None
    comment_id: Optional[int] = None
    skipped: bool = False
    reason: Optional[str] = None

    @classmethod
    def skip(cls, reason: str, mode: Optional[Mode] = Mode.SKIP) -> "PrepareResult":
        """Create a skipped result with empty branch info"""
        return cls(
            branch_info=BranchInfo(base_branch="", current_branch=""),
            mode=mode,
            skipped=True,
            reason=reason,
        )
