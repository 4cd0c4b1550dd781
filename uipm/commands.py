"""External command execution with redacted logging and a drainable error log."""
from __future__ import annotations

from dataclasses import dataclass
import logging
import subprocess
import threading
from typing import Sequence

from uipm.errors import CommandError
from uipm.logging_utils import TRACE_LEVEL
from uipm.models import CommandErrorRecord


class CommandErrorLog:
    """Ordered failure messages, emptied on every drain."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[CommandErrorRecord] = []

    def push(self, message: str) -> None:
        with self._lock:
            self._records.append(CommandErrorRecord(message=message))

    def drain(self) -> list[CommandErrorRecord]:
        with self._lock:
            records, self._records = self._records, []
        return records


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    output: bytes


def redact_args(args: Sequence[str], prefixes: Sequence[str]) -> list[str]:
    redacted: list[str] = []
    for arg in args:
        prefix = next((p for p in prefixes if arg.startswith(p)), None)
        redacted.append(f"{prefix}***" if prefix is not None else arg)
    return redacted


class CommandRunner:
    """Runs external programs synchronously.

    Failures are logged, pushed onto the shared :class:`CommandErrorLog` and
    raised as :class:`CommandError`; retrying is up to the caller. No timeout
    is applied, so a hung program blocks the calling thread.
    """

    def __init__(
        self,
        error_log: CommandErrorLog,
        redact_prefixes: Sequence[str] = ("--authkey=",),
    ) -> None:
        self.error_log = error_log
        self.redact_prefixes = tuple(redact_prefixes)
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(self, program: str, args: Sequence[str] = ()) -> CommandResult:
        """Run with stdout and stderr combined."""
        command = [program, *args]
        self._log_command(command)
        try:
            proc = subprocess.run(
                command,
                check=False,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as exc:
            raise self._failure(program, str(exc)) from exc
        output = proc.stdout or b""
        if proc.returncode != 0:
            raise self._failure(
                program,
                f"exit status {proc.returncode}",
                returncode=proc.returncode,
                output=output,
            )
        self.logger.debug("[exec] ok")
        if output:
            self.logger.log(TRACE_LEVEL, "output: %s", output.decode(errors="replace").strip())
        return CommandResult(returncode=proc.returncode, output=output)

    def run_capture(self, program: str, args: Sequence[str] = ()) -> bytes:
        """Run and return stdout; stderr is only kept for the failure message."""
        command = [program, *args]
        self._log_command(command)
        try:
            proc = subprocess.run(command, check=False, capture_output=True)
        except OSError as exc:
            raise self._failure(program, str(exc)) from exc
        stdout = proc.stdout or b""
        if proc.returncode != 0:
            raise self._failure(
                program,
                f"exit status {proc.returncode}",
                returncode=proc.returncode,
                output=proc.stderr or b"",
            )
        self.logger.debug("[exec] ok (%s bytes)", len(stdout))
        if stdout:
            self.logger.log(TRACE_LEVEL, "stdout: %s", stdout.decode(errors="replace").strip())
        return stdout

    def _log_command(self, command: list[str]) -> None:
        self.logger.info("[exec] $ %s", " ".join(redact_args(command, self.redact_prefixes)))

    def _failure(
        self,
        program: str,
        error: str,
        returncode: int | None = None,
        output: bytes = b"",
    ) -> CommandError:
        detail = output.decode(errors="replace").strip()
        message = f"{program}: {error} - {detail}" if detail else f"{program}: {error}"
        self.logger.error("[exec] error: %s", message)
        self.error_log.push(message)
        return CommandError(program, message, returncode=returncode, output=output)
