"""Classified loader errors and user-facing error display."""

import logging
from enum import Enum
from pathlib import Path

from rich.console import Console

logger = logging.getLogger(__name__)
console = Console()


class ErrorCategory(Enum):
    """Categories of load failures."""

    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    UNSUPPORTED = "unsupported"
    IO = "io"
    NO_BOOT_FOUND = "no_boot_found"
    CONFIGURATION = "configuration"


class LoaderError(Exception):
    """Base exception for umdloader with enhanced user experience."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        *,
        solution: str | None = None,
        details: str | None = None,
        recoverable: bool = True,
        log_level: int = logging.ERROR,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.solution = solution
        self.details = details
        self.recoverable = recoverable
        self.log_level = log_level
        self.original_error = original_error

    def display_to_user(self) -> None:
        """Display error to user with helpful context."""
        category_styles = {
            ErrorCategory.NOT_FOUND: ("🔍", "yellow"),
            ErrorCategory.MALFORMED: ("🧩", "yellow"),
            ErrorCategory.UNSUPPORTED: ("💿", "blue"),
            ErrorCategory.IO: ("📁", "red"),
            ErrorCategory.NO_BOOT_FOUND: ("🔒", "red"),
            ErrorCategory.CONFIGURATION: ("⚙️", "yellow"),
        }

        emoji, color = category_styles.get(self.category, ("❌", "red"))
        heading = self.category.value.replace("_", " ").title()

        console.print(f"\n{emoji} [{color} bold]{heading} Error[/{color} bold]")
        console.print(f"[{color}]{self.message}[/{color}]")

        if self.details:
            console.print(f"\n[dim]Details:[/dim] {self.details}")

        if self.solution:
            console.print(f"\n[green]💡 Solution:[/green] {self.solution}")

        if self.recoverable:
            console.print("\n[dim]This error may be temporary. You can try again.[/dim]")
        else:
            console.print(
                "\n[dim]This error requires intervention before continuing.[/dim]",
            )

        if self.original_error:
            logger.log(
                self.log_level,
                "%s: %s",
                self.category.value,
                self.message,
                exc_info=self.original_error,
            )
        else:
            logger.log(self.log_level, "%s: %s", self.category.value, self.message)


class NotFoundError(LoaderError):
    """A file, entry or boot candidate is absent."""

    def __init__(self, message: str, *, path: str | Path | None = None, **kwargs):
        self.path = path
        solution = kwargs.pop("solution", None)
        if not solution and path is not None:
            solution = f"Check that {path} exists"
        super().__init__(message, ErrorCategory.NOT_FOUND, solution=solution, **kwargs)


class MalformedError(LoaderError):
    """Metadata or a container could not be parsed."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("log_level", logging.WARNING)
        super().__init__(message, ErrorCategory.MALFORMED, **kwargs)


class UnsupportedMediaError(LoaderError):
    """The media was not recognized as any loadable content kind."""

    def __init__(self, message: str, **kwargs):
        solution = kwargs.pop(
            "solution",
            "Use an extracted UMD directory, an EBOOT.PBP or an ELF/PRX executable",
        )
        super().__init__(
            message,
            ErrorCategory.UNSUPPORTED,
            solution=solution,
            recoverable=False,
            **kwargs,
        )


class LoaderIOError(LoaderError):
    """Unexpected I/O fault that is not simply an absent entry."""

    def __init__(self, message: str, **kwargs):
        solution = kwargs.pop("solution", "Check file permissions and the media itself")
        super().__init__(message, ErrorCategory.IO, solution=solution, **kwargs)


class NoBootFoundError(LoaderError):
    """Every boot candidate was absent, empty or unreadable."""

    def __init__(
        self,
        message: str = "Encrypted or unrecognized boot image",
        *,
        tried: list[str] | None = None,
        **kwargs,
    ):
        self.tried = tried or []
        details = kwargs.pop("details", None)
        if details is None and self.tried:
            details = "Tried: " + ", ".join(self.tried)
        solution = kwargs.pop(
            "solution",
            "Place a decrypted EBOOT.BIN named <DISC_ID>.BIN in the decrypted cache directory",
        )
        super().__init__(
            message,
            ErrorCategory.NO_BOOT_FOUND,
            details=details,
            solution=solution,
            recoverable=False,
            **kwargs,
        )


class ConfigurationError(LoaderError):
    """Configuration-related errors."""

    def __init__(self, message: str, *, config_path: Path | None = None, **kwargs):
        solution = kwargs.pop("solution", None)
        if not solution and config_path:
            solution = f"Check your configuration file at {config_path}"
        super().__init__(
            message,
            ErrorCategory.CONFIGURATION,
            solution=solution,
            **kwargs,
        )


def handle_error(
    error: Exception,
    *,
    category: ErrorCategory | None = None,
    **kwargs,
) -> None:
    """Convert generic exceptions to LoaderError and display to user."""
    if isinstance(error, LoaderError):
        error.display_to_user()
        return

    if category is None:
        if isinstance(error, FileNotFoundError):
            category = ErrorCategory.NOT_FOUND
        elif isinstance(error, OSError):
            category = ErrorCategory.IO
        else:
            category = ErrorCategory.UNSUPPORTED

    loader_error = LoaderError(
        message=str(error) or "An unexpected error occurred",
        category=category,
        original_error=error,
        **kwargs,
    )
    loader_error.display_to_user()
