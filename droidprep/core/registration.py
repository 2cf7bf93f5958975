"""Registration of capability servers with the agent CLI"""

import json
import logging
import subprocess
from typing import Any, Callable, Dict, List, Optional

from droidprep.core.exceptions import McpRegistrationError

logger = logging.getLogger(__name__)

def run_command(args: List[str]) -> None:
    """Run a command, raising CalledProcessError on failure"""
    subprocess.run(args, check=True, capture_output=True, text=True)

def parse_servers(manifest: str) -> Dict[str, Dict[str, Any]]:
    """Server definitions of a launch manifest keyed by name

    Raises ValueError when the manifest is not shaped like
    {"mcpServers": {name: {...}}}.
    """
    document = json.loads(manifest) or {}
    if not isinstance(document, dict):
        raise ValueError("manifest must be a JSON object")
    servers = document.get("mcpServers") or {}
    if not isinstance(servers, dict):
        raise ValueError("mcpServers must be an object")
    for name, definition in servers.items():
        if not isinstance(definition, dict):
            raise ValueError(f"server {name} must be an object")
    return servers

def register_mcp_servers(
    manifest: Optional[str],
    required: bool = False,
    runner: Callable[[List[str]], None] = run_command,
    warn: Optional[Callable[[str], None]] = None,
    droid_bin: str = "droid"
) -> List[str]:
    """Register every server of a launch manifest, returning their names

    A malformed manifest is a warning unless registration was required.
    """
    warn = warn or logger.warning
    if not manifest or not manifest.strip():
        if required:
            raise McpRegistrationError("MCP server registration requested but no manifest given")
        return []

    try:
        servers = parse_servers(manifest)
    except ValueError as e:
        message = f"Invalid MCP launch manifest: {str(e)}"
        if required:
            raise McpRegistrationError(message) from e
        warn(message)
        return []

    if servers:
        logger.info("Registering %d MCP servers: %s", len(servers), ", ".join(servers))

    registered = []
    for name, definition in servers.items():
        command = " ".join(
            part for part in [definition.get("command"), *(definition.get("args") or [])] if part
        )

        try:
            runner([droid_bin, "mcp", "remove", name])
        except (subprocess.CalledProcessError, OSError):
            logger.debug("MCP server %s was not registered before", name)

        args = [droid_bin, "mcp", "add", name, command]
        for key, value in (definition.get("env") or {}).items():
            args.extend(["--env", f"{key}={value}"])

        try:
            runner(args)
        except (subprocess.CalledProcessError, OSError) as e:
            raise McpRegistrationError(f"Failed to register MCP server {name}: {str(e)}") from e

        logger.info("Registered MCP server", extra={'server': name})
        registered.append(name)

    return registered
