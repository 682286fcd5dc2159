"""Error taxonomy for the transformation pipeline.

Every fatal error carries a stable ``kind`` string so the HTTP layer and the
CLI can report it without inspecting the class hierarchy. Parse problems never
reach callers: parsers catch ``ParseError`` and record a ``ParseWarning`` on
the IR module instead.
"""

from __future__ import annotations


class JITPhoneError(Exception):
    """Base class for all pipeline errors."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ParseError(JITPhoneError):
    """Non-fatal parse problem. Parsers convert these into warnings."""

    kind = "parse"

    def __init__(self, message: str, line: int = 0):
        super().__init__(message)
        self.line = line


class UnsupportedFormatError(JITPhoneError):
    """The requested dialect or instruction format is not registered."""

    kind = "unsupported_format"

    def __init__(self, format_tag: str, supported: list[str]):
        self.format_tag = format_tag
        self.supported = sorted(supported)
        super().__init__(
            f"Unsupported source format '{format_tag}'. "
            f"Supported formats: {', '.join(self.supported)}"
        )


class SizeLimitError(JITPhoneError):
    """Input is larger than the configured maximum."""

    kind = "size_limit"

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Input size {size} exceeds maximum of {limit} characters")


class CodeSyntaxError(JITPhoneError):
    """Code handed to the optimizer is not well-formed JavaScript."""

    kind = "syntax"

    def __init__(self, message: str, line: int = 0, column: int = 0):
        super().__init__(message)
        self.line = line
        self.column = column

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({"line": self.line, "column": self.column})
        return data


class UnknownProfileError(JITPhoneError):
    """No execution profile is registered under the requested name."""

    kind = "unknown_profile"

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = sorted(available)
        super().__init__(
            f"Unknown target profile '{name}'. Available: {', '.join(self.available)}"
        )


class ExecutionError(JITPhoneError):
    """Code raised an exception inside the sandbox."""

    kind = "execution"


class ExecutionTimeoutError(ExecutionError):
    """Sandbox execution exceeded its wall-clock budget."""

    kind = "timeout"
