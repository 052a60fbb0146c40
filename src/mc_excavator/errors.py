"""Failure taxonomy shared by the excavation core."""


class ExcavatorError(Exception):
    """Base class for excavation core failures."""


class ValidationError(ExcavatorError, ValueError):
    """Raised when a caller-supplied parameter is out of bounds; no state is changed."""


class BusyError(ExcavatorError):
    """Raised when an operation that needs an idle component is invoked while it is busy."""


class DecompositionError(ExcavatorError):
    """Raised when the world cannot be queried while building the mining queue."""


class TransientCellError(ExcavatorError):
    """A single cell could not be processed; the loop logs it and moves on."""

    def __init__(self, coordinate, reason: str) -> None:
        super().__init__(f"Cell {coordinate} skipped: {reason}")
        self.coordinate = coordinate
        self.reason = reason
