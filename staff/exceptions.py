"""
Domain errors raised by the lending workflow.
"""


class LendingError(ValueError):
    code = "lending_error"


class LendingStateError(LendingError):
    """The request is not in a status that allows the requested transition."""
    code = "invalid_lending_transition"


class LendingConflictError(LendingError):
    """The stylist is already lent out for part of the requested dates."""
    code = "lending_conflict"
