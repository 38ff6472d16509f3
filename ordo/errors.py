# errors.py — Exception types raised by the Ordo scheduler.


class OrdoError(Exception):
    """Base class for errors raised by the scheduler."""

    pass


class ConfigurationError(OrdoError, ValueError):
    """Raised when the problem data is malformed or eligibility cannot be satisfied, before search starts."""

    pass


class ExtractionError(OrdoError, RuntimeError):
    """Raised when a schedule is extracted from a store that is not fully fixed."""

    pass


class Inconsistency(Exception):
    """Raised when a domain becomes empty during propagation or branching.

    The propagation engine fills in ``constraint`` with the rule that was
    running when the wipe-out happened. Only the solver catches it.
    """

    def __init__(self, var=None, reason: str = ""):
        self.var = var
        self.reason = reason
        self.constraint = None
        name = getattr(var, "name", "?")
        super().__init__(f"empty domain for {name}: {reason}" if reason else f"empty domain for {name}")
