"""Explicit outcomes for steps of multi-step file operations."""

import enum
from collections.abc import Callable
from dataclasses import dataclass
from typing import final

from server.apps.files.exceptions import FileStoreError


class StepStatus(enum.Enum):
    """How a single step of an operation ended."""

    SUCCEEDED = 'succeeded'
    FAILED_NONFATAL = 'failed_nonfatal'
    FAILED_FATAL = 'failed_fatal'


@final
@dataclass(frozen=True)
class StepOutcome:
    """Result of one step: its name, status and the error if any."""

    step: str
    status: StepStatus
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status is StepStatus.SUCCEEDED

    @property
    def fatal(self) -> bool:
        return self.status is StepStatus.FAILED_FATAL

    def raise_if_fatal(self) -> None:
        """Re-raise the captured error when the step was fatal.

        Raises:
            Exception: The error captured by the failed step.
        """
        if self.fatal and self.error is not None:
            raise self.error


def attempt(
    step: str,
    action: Callable[[], object],
    *,
    fatal: bool,
) -> StepOutcome:
    """Run one step and capture file store or OS failures.

    Only ``FileStoreError`` and ``OSError`` are captured; anything else
    is a programming error and propagates.

    Args:
        step: Step name used in logs.
        action: Callable performing the step.
        fatal: Whether a failure must abort the enclosing operation.

    Returns:
        StepOutcome describing how the step ended.
    """
    try:
        action()
    except (FileStoreError, OSError) as error:
        status = StepStatus.FAILED_FATAL if fatal else StepStatus.FAILED_NONFATAL
        return StepOutcome(step=step, status=status, error=error)
    return StepOutcome(step=step, status=StepStatus.SUCCEEDED)
