"""Run orchestration and run metrics for droidprep"""

import logging
import time
from typing import Optional

from prometheus_client import REGISTRY, Counter, Histogram, write_to_textfile

from droidprep.config import ActionInputs
from droidprep.core.context import normalize
from droidprep.core.dispatcher import prepare_tag_execution
from droidprep.core.exceptions import ConfigurationError, InvariantViolation
from droidprep.core.modes import PREPARERS, RunEnvironment
from droidprep.core.trigger import contains_trigger, should_trigger
from droidprep.core.types.events import NormalizedContext, RawEvent
from droidprep.core.types.pipeline import Mode, PrepareResult, RunStage

logger = logging.getLogger(__name__)

NO_TRIGGER = "no_trigger"

# Metrics
RUN_TRANSITIONS = Counter(
    'droidprep_run_stage_transitions_total',
    'Total number of preparation run stage transitions',
    ['from_stage', 'to_stage']
)

RUN_MODES = Counter(
    'droidprep_dispatched_modes_total',
    'Total number of runs per dispatched mode',
    ['mode']
)

RUN_DURATION = Histogram(
    'droidprep_run_duration_seconds',
    'Time taken to prepare a run',
    ['final_stage']
)

TERMINAL_STAGES = {RunStage.COMPLETED, RunStage.SKIPPED, RunStage.FAILED}

class RunTracker:
    """Tracks the stage of one preparation run"""

    def __init__(self, clock=time.monotonic):
        self.stage = RunStage.RECEIVED
        self._clock = clock
        self._started = clock()

    def advance(self, new_stage: RunStage) -> None:
        if not self.stage.can_transition_to(new_stage):
            raise InvariantViolation(
                f"Invalid stage transition from {self.stage.value} to {new_stage.value}"
            )

        RUN_TRANSITIONS.labels(
            from_stage=self.stage.value,
            to_stage=new_stage.value
        ).inc()
        self.stage = new_stage

        if new_stage in TERMINAL_STAGES:
            RUN_DURATION.labels(final_stage=new_stage.value).observe(self._clock() - self._started)

    def fail(self) -> None:
        if self.stage not in TERMINAL_STAGES:
            self.advance(RunStage.FAILED)

def export_metrics(path: Optional[str]) -> None:
    """Write the metrics registry to a node-exporter textfile"""
    if path:
        write_to_textfile(path, REGISTRY)

def _record_result(tracker: RunTracker, env: RunEnvironment, result: PrepareResult) -> PrepareResult:
    if result.mode is not None:
        RUN_MODES.labels(mode=result.mode.value).inc()

    if result.skipped:
        env.outputs.set_output("skipped", True)
        env.outputs.set_output("skip_reason", result.reason or "")
        tracker.advance(RunStage.SKIPPED)
        return result

    env.outputs.set_output("skipped", False)
    tracker.advance(RunStage.PREPARED)
    tracker.advance(RunStage.COMPLETED)
    return result

def run_prepare(raw_event: RawEvent, inputs: ActionInputs, env: RunEnvironment) -> PrepareResult:
    """Normalize, trigger-check, dispatch and prepare one event"""
    tracker = RunTracker()
    try:
        context = normalize(raw_event, inputs)
        tracker.advance(RunStage.NORMALIZED)

        env.outputs.set_output("contains_trigger", contains_trigger(context))
        if not should_trigger(context):
            logger.info(
                "No trigger found, skipping",
                extra={'event': context.event_name, 'entity_number': context.entity_number}
            )
            env.outputs.set_output("skipped", True)
            env.outputs.set_output("skip_reason", NO_TRIGGER)
            tracker.advance(RunStage.SKIPPED)
            return PrepareResult.skip(NO_TRIGGER, mode=None)

        tracker.advance(RunStage.DISPATCHED)
        result = prepare_tag_execution(context, env)
        return _record_result(tracker, env, result)
    except Exception:
        tracker.fail()
        raise

def _prepare_single_mode(
    context: NormalizedContext,
    env: RunEnvironment,
    mode: Mode,
    comment_id: Optional[int]
) -> PrepareResult:
    preparer = PREPARERS.get(mode)
    if preparer is None:
        raise ConfigurationError(f"Mode {mode.value} cannot be prepared on its own")
    if mode.requires_pr and not context.is_pr:
        raise ConfigurationError(f"{mode.value} is only supported on pull requests")

    if comment_id:
        env.outputs.set_output("droid_comment_id", comment_id)
    if context.is_pr:
        env.outputs.set_output("review_pr_number", context.entity_number)
    return preparer(context, env, comment_id)

def run_mode(
    raw_event: RawEvent,
    inputs: ActionInputs,
    env: RunEnvironment,
    mode: Mode,
    comment_id: Optional[int] = None
) -> PrepareResult:
    """Prepare one mode directly, reusing an existing tracking comment

    Used by the parallel jobs that follow a dual review dispatch.
    """
    tracker = RunTracker()
    try:
        context = normalize(raw_event, inputs)
        tracker.advance(RunStage.NORMALIZED)
        tracker.advance(RunStage.DISPATCHED)
        result = _prepare_single_mode(context, env, mode, comment_id)
        return _record_result(tracker, env, result)
    except Exception:
        tracker.fail()
        raise

def run_validator(
    raw_event: RawEvent,
    inputs: ActionInputs,
    env: RunEnvironment,
    comment_id: Optional[int]
) -> PrepareResult:
    """Prepare the review validator pass on an existing tracking comment"""
    if not inputs.review_use_validator:
        raise ConfigurationError("review_use_validator must be true to run prepare-validator")
    if not comment_id:
        raise ConfigurationError("DROID_COMMENT_ID is required for validator run")
    return run_mode(raw_event, inputs, env, Mode.REVIEW_VALIDATOR, comment_id)
