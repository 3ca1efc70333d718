"""Failure taxonomy for the analysis pipeline.

Callers (web handlers, batch runners) catch ExoScanError and translate it into
their own error reporting. Numeric degeneracies never raise; they are recovered
inside the stages.
"""


class ExoScanError(Exception):
    """Base class for all pipeline failures."""


class InsufficientDataError(ExoScanError):
    """Raised when a file yields fewer than two usable (time, flux) rows."""

    def __init__(self, n_rows, message=None):
        self.n_rows = n_rows
        if message is None:
            message = (f"No usable data rows found ({n_rows} parsed). Ensure the file "
                       "has at least two numeric columns (time, flux).")
        super().__init__(message)


class AnalysisError(ExoScanError):
    """Unexpected failure during a run. Wraps the underlying exception message."""

    def __init__(self, message, stage=None):
        self.stage = stage
        super().__init__(message)
