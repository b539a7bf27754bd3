"""Exceptions raised by the compensation services."""


class CompensationError(Exception):
    """Base class for compensation errors."""


class CompensationConflict(CompensationError):
    """The record is in a state that does not allow the requested change."""


class CompensationNotFound(CompensationError):
    """Record, plan or territory missing or outside the caller's scope."""


class MissingFactError(CompensationError):
    """A bonus rule needs a session fact that has not been reported yet.

    Raised by individual bonus rules and caught by the calculator, which
    pays zero for the component instead.
    """

    def __init__(self, fact: str, rule: str = "") -> None:
        self.fact = fact
        self.rule = rule
        super().__init__(f"Missing session fact '{fact}'" + (f" for rule '{rule}'" if rule else ""))
