"""Exceptions raised by the sitegen build engine."""

from __future__ import annotations

from pathlib import Path


class SiteGenError(Exception):
    """Base class for build engine errors."""


class SourceNotFoundError(SiteGenError):
    """A build or removal was requested for an unregistered path."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"{path}: not found")


class BuildError(SiteGenError):
    """Error during a build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


class TemplateFunctionError(SiteGenError):
    """A template function was called with arguments it cannot handle."""


class MinifyError(SiteGenError):
    """The minifier rejected its input."""
