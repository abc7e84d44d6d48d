"""Exception types raised by oceanenv.

Lookups that simply find nothing never raise: they return a not-found
``LookupResult`` or a not-valid payload.  The classes below cover the cases
that a caller must be able to see and decide about.
"""


class OceanEnvError(Exception):
    """Base class for every error raised by this package."""


class DbConnectionError(OceanEnvError):
    """A backing database could not be opened or finalized."""

    def __init__(self, name, reason):
        self.name = str(name)
        self.reason = reason
        super().__init__(f"Backing database '{self.name}' unavailable: {reason}")


class InvariantViolation(OceanEnvError):
    """A precondition on the query arguments or on the data does not hold."""


class SedimentResolutionError(InvariantViolation):
    """The DECK41 cascade could not produce a sediment.

    ``points`` are the query coordinates of the query and ``cascade`` the last
    CascadeState evaluated (None when nothing was evaluated).
    """

    def __init__(self, message, points=(), cascade=None):
        self.points = tuple(points)
        self.cascade = cascade
        coords = ', '.join(str(p) for p in self.points)
        super().__init__(f"{message} | coordinates: [{coords}]")


class ImportFormatError(OceanEnvError, ValueError):
    """Malformed custom override text or file."""
