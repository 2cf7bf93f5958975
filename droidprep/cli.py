"""Command line entry points used by the workflow steps"""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from droidprep.config import ActionInputs, Config, inputs_presence
from droidprep.core.exceptions import ConfigurationError, CoreError
from droidprep.core.modes import RunEnvironment
from droidprep.core.outputs import ActionOutputs
from droidprep.core.pipeline import export_metrics, run_mode, run_prepare, run_validator
from droidprep.core.registration import register_mcp_servers
from droidprep.core.types.events import RawEvent
from droidprep.core.types.pipeline import Mode
from droidprep.services.github import GitHubClient
from droidprep.services.token import setup_github_token

logger = logging.getLogger(__name__)

MODE_CHOICES = {
    "fill": Mode.FILL,
    "review": Mode.REVIEW,
    "security-review": Mode.SECURITY_REVIEW,
    "security-scan": Mode.SECURITY_SCAN,
}

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Prepare droid runs from GitHub events")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("DROIDPREP_LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("prepare", help="Dispatch the triggering event and prepare the run")
    p.add_argument(
        "--mode",
        choices=sorted(MODE_CHOICES),
        help="Prepare one mode directly, reusing DROID_COMMENT_ID when set.",
    )

    sub.add_parser("prepare-validator", help="Prepare the review validator pass")

    r = sub.add_parser("register-mcp", help="Register capability servers with the droid CLI")
    r.add_argument("--manifest", help="Launch manifest JSON (default: $MCP_TOOLS)")
    r.add_argument("--manifest-file", help="Read the launch manifest from a file")
    r.add_argument(
        "--required",
        action="store_true",
        help="Fail when the manifest is missing or malformed.",
    )

    sub.add_parser(
        "inputs-presence",
        help="Report which action inputs ($ALL_INPUTS) differ from their defaults",
    )

    s = sub.add_parser("serve", help="Run the webhook triage service")
    s.add_argument("--host", default="0.0.0.0")
    s.add_argument("--port", type=int, default=5001)

    return parser

def _comment_id_from_env() -> Optional[int]:
    value = (os.environ.get("DROID_COMMENT_ID") or "").strip()
    if not value:
        return None
    if not value.isdigit():
        raise ConfigurationError(f"DROID_COMMENT_ID must be numeric, got {value!r}")
    return int(value)

def _run_environment(inputs: ActionInputs, outputs: ActionOutputs) -> RunEnvironment:
    token = setup_github_token()
    github = GitHubClient(token, api_url=inputs.github_api_url)
    return RunEnvironment(github=github, github_token=token, outputs=outputs)

def _prepare(args, outputs: ActionOutputs) -> int:
    inputs = ActionInputs.from_env()
    raw_event = RawEvent.from_env()
    env = _run_environment(inputs, outputs)

    if args.command == "prepare-validator":
        result = run_validator(raw_event, inputs, env, _comment_id_from_env())
    elif args.mode:
        result = run_mode(raw_event, inputs, env, MODE_CHOICES[args.mode], _comment_id_from_env())
    else:
        result = run_prepare(raw_event, inputs, env)

    if result.skipped:
        logger.info("Run skipped: %s", result.reason)
    return 0

def _register(args, outputs: ActionOutputs) -> int:
    manifest = args.manifest
    if args.manifest_file:
        with open(args.manifest_file, encoding="utf-8") as handle:
            manifest = handle.read()
    if manifest is None:
        manifest = os.environ.get("MCP_TOOLS", "")

    names = register_mcp_servers(manifest, required=args.required, warn=outputs.warning)
    outputs.set_output("registered_mcp_servers", ",".join(names))
    return 0

def _inputs_presence(outputs: ActionOutputs) -> int:
    raw = os.environ.get("ALL_INPUTS")
    if not raw:
        logger.info("ALL_INPUTS environment variable not found")
        outputs.set_output("action_inputs_present", "{}")
        return 0
    try:
        all_inputs = json.loads(raw)
    except ValueError as e:
        outputs.warning(f"Failed to parse ALL_INPUTS JSON: {str(e)}")
        outputs.set_output("action_inputs_present", "{}")
        return 0
    if not isinstance(all_inputs, dict):
        outputs.warning("ALL_INPUTS must be a JSON object")
        outputs.set_output("action_inputs_present", "{}")
        return 0
    outputs.set_output("action_inputs_present", json.dumps(inputs_presence(all_inputs)))
    return 0

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.command == "serve":
        from droidprep.app import create_app
        create_app().run(host=args.host, port=args.port)
        return 0

    outputs = ActionOutputs.from_env()
    try:
        if args.command in ("prepare", "prepare-validator"):
            return _prepare(args, outputs)
        if args.command == "register-mcp":
            return _register(args, outputs)
        if args.command == "inputs-presence":
            return _inputs_presence(outputs)
        parser.error(f"Unknown command: {args.command}")
        return 2
    except CoreError as e:
        outputs.error(f"{args.command} failed with error: {str(e)}")
        outputs.set_output("prepare_error", str(e))
        return 1
    finally:
        outputs.flush()
        export_metrics(Config.METRICS_FILE)

if __name__ == "__main__":
    sys.exit(main())
