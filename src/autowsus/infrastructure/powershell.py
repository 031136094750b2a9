"""
Local PowerShell runner.

Runs PowerShell scripts in a child process and captures their output.
Scripts that return data are expected to end with ConvertTo-Json so the
caller gets structured results instead of formatted text.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import time
from typing import Any, Optional

# pyright: reportMissingImports=false
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class CommandResult(BaseModel):
    """
    Structured result of one PowerShell invocation.
    """

    success: bool = Field(..., description="Whether the command succeeded")
    stdout: str = Field("", description="Standard output")
    stderr: str = Field("", description="Standard error")
    exit_code: Optional[int] = Field(None, description="Process exit code")
    duration_ms: int = Field(0, description="Execution duration in milliseconds")
    model_config = ConfigDict(use_enum_values=True)

    def parse_json(self) -> Any:
        """Parse stdout as JSON; empty output is None."""
        text = self.stdout.strip()
        if not text:
            return None
        return json.loads(text)

    def error_text(self) -> str:
        return (self.stderr or self.stdout or f"exit code {self.exit_code}").strip()


class PowerShellRunner:
    """Executes PowerShell scripts with a timeout."""

    def __init__(self, executable: str | None = None, timeout: int = 600):
        """
        Initialize runner.

        Args:
            executable: powershell.exe or pwsh; detected when None
            timeout: Default timeout in seconds
        """
        self.executable = executable or self._detect_executable()
        self.timeout = timeout

    @staticmethod
    def _detect_executable() -> str:
        for candidate in ("powershell", "pwsh"):
            if shutil.which(candidate):
                return candidate
        return "powershell"

    def run(self, script: str, timeout: int | None = None) -> CommandResult:
        """
        Run a script and capture its output.

        Args:
            script: PowerShell script text
            timeout: Override for the default timeout

        Returns:
            CommandResult; a timeout or missing executable is reported as a
            failed result rather than raised
        """
        start = time.time()
        try:
            proc = subprocess.run(
                [self.executable, "-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-Command", script],
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.warning("PowerShell command timed out after %ss", timeout or self.timeout)
            return CommandResult(
                success=False,
                stderr=f"Timed out after {timeout or self.timeout}s",
                duration_ms=int((time.time() - start) * 1000),
            )
        except OSError as exc:
            logger.error("Cannot start %s: %s", self.executable, exc)
            return CommandResult(success=False, stderr=str(exc))

        duration_ms = int((time.time() - start) * 1000)
        logger.debug("PowerShell exited with %s in %d ms", proc.returncode, duration_ms)
        return CommandResult(
            success=proc.returncode == 0,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            exit_code=proc.returncode,
            duration_ms=duration_ms,
        )


def ps_quote(value: str) -> str:
    """Single-quote a value for PowerShell, doubling embedded quotes."""
    return "'" + str(value).replace("'", "''") + "'"
