"""Exception types raised across the trip tracker and the training pipeline."""
from __future__ import annotations

from typing import Optional


class FerryWatchError(Exception):
    pass


class FeedError(FerryWatchError):
    """The WSF feed could not be reached or returned an unusable payload."""


class FeatureSchemaMismatchError(FerryWatchError):
    """Stored model coefficients do not line up with the extracted features."""


class PipelineError(FerryWatchError):
    """A failure inside one training-pipeline step.

    ``recoverable`` errors are reported in the run summary and the run goes
    on; anything else aborts the run.
    """

    def __init__(
        self,
        message: str,
        *,
        error_type: str,
        step: str,
        terminal_pair: Optional[str] = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.step = step
        self.terminal_pair = terminal_pair
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error_type": self.error_type,
            "step": self.step,
            "terminal_pair": self.terminal_pair,
            "recoverable": self.recoverable,
            "message": str(self),
        }
