from __future__ import annotations


class UipmError(Exception):
    """Base class for agent errors."""


class SourceUnavailable(UipmError):
    """A raw counter file or device tree could not be read or parsed."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class CommandError(UipmError):
    """An external program failed to launch or exited non-zero."""

    def __init__(self, program: str, message: str, returncode: int | None = None,
                 output: bytes = b"") -> None:
        super().__init__(message)
        self.program = program
        self.returncode = returncode
        self.output = output
