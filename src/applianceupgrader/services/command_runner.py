"""Subprocess execution service for applianceupgrader."""

import os
import subprocess
from typing import Dict, Iterable, List, Optional

from applianceupgrader.errors import UpgraderError

REDACTED = "******"


class CommandRunner:
    """Runs external commands with consistent error handling.

    Non-zero exits are returned to the caller when ``check`` is disabled so
    that each component can turn them into its own typed failure.
    """

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout

    @staticmethod
    def describe(cmd: List[str], redact: Iterable[str] = ()) -> str:
        secrets = [value for value in redact if value]
        parts = []
        for part in cmd:
            for secret in secrets:
                part = part.replace(secret, REDACTED)
            parts.append(part)
        return " ".join(parts)

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
        redact: Iterable[str] = (),
    ) -> subprocess.CompletedProcess:
        redact = tuple(redact)
        cmd_str = self.describe(cmd, redact)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            result = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
                env=self._environment(env),
            )
        except FileNotFoundError as exc:
            raise UpgraderError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise UpgraderError(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except OSError as exc:
            raise UpgraderError(f"Could not start {cmd[0]}: {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", self.describe([result.stdout.strip()], redact))

        if result.returncode == 0:
            return result

        message = self._failure_message(result, cmd_str, redact)
        if check:
            raise UpgraderError(message)

        self.logger.warning(message)
        return result

    @staticmethod
    def _environment(env: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        # Extra variables are layered over the inherited environment.
        if not env:
            return None
        merged = dict(os.environ)
        merged.update(env)
        return merged

    def _failure_message(self, result: subprocess.CompletedProcess, cmd_str: str, redact) -> str:
        message = f"Command failed ({result.returncode}): {cmd_str}"
        stderr = (result.stderr or "").strip()
        if stderr:
            message = f"{message}\n{self.describe([stderr], redact)}"
        return message
