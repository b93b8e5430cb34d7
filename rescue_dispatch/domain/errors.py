"""
Error taxonomy shared by the domain, the stores and the API.

"No match" is deliberately absent: it is an expected outcome and is
represented as ``None`` by the matcher.
"""


class InputError(ValueError):
    """Malformed coordinates or out-of-range hazard attributes."""


class ConflictError(Exception):
    """A concurrent reservation won the race for a driver or trip."""


class NotFoundError(LookupError):
    """A driver or trip id that the store does not know."""


class TransientIOError(Exception):
    """A collaborator (hazard supply, driver directory) failed; retry later."""
