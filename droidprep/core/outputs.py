"""Process outputs consumed by the next workflow step"""

import logging
import os
import sys
import uuid
from typing import Dict, List, Mapping, Optional, TextIO, Union

logger = logging.getLogger(__name__)

OutputValue = Union[str, bool, int, None]

def _format(value: OutputValue) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)

class ActionOutputs:
    """Collects step outputs and exported variables, written out by flush()"""

    def __init__(
        self,
        output_file: Optional[str] = None,
        env_file: Optional[str] = None,
        stream: Optional[TextIO] = None
    ):
        self.output_file = output_file
        self.env_file = env_file
        self.stream = stream or sys.stdout
        self.outputs: Dict[str, str] = {}
        self.exported: Dict[str, str] = {}
        self.warnings: List[str] = []

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ActionOutputs":
        env = os.environ if env is None else env
        return cls(
            output_file=env.get("GITHUB_OUTPUT") or None,
            env_file=env.get("GITHUB_ENV") or None,
        )

    def set_output(self, name: str, value: OutputValue) -> None:
        self.outputs[name] = _format(value)

    def export_variable(self, name: str, value: OutputValue) -> None:
        self.exported[name] = _format(value)

    def warning(self, message: str) -> None:
        """Record a warning and annotate the workflow log"""
        self.warnings.append(message)
        logger.warning(message)
        print(f"::warning::{message}", file=self.stream)

    def error(self, message: str) -> None:
        logger.error(message)
        print(f"::error::{message}", file=self.stream)

    @staticmethod
    def _write(path: str, values: Dict[str, str]) -> None:
        with open(path, "a", encoding="utf-8") as handle:
            for name, value in values.items():
                delimiter = f"ghadelimiter_{uuid.uuid4()}"
                handle.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")

    def flush(self) -> None:
        """Write collected values to the workflow command files"""
        if self.output_file:
            self._write(self.output_file, self.outputs)
        else:
            for name, value in self.outputs.items():
                logger.info("Output %s=%s", name, value)

        if self.env_file:
            self._write(self.env_file, self.exported)
        else:
            for name, value in self.exported.items():
                logger.info("Exported %s=%s", name, value)
