"""Error taxonomy shared by the resolution services.

Only the batch pipeline recovers from failures (per party, per chunk); every
other operation raises one of these synchronously.
"""


class PartyFederationError(Exception):
    """Base class for errors raised by partyfed."""


class InvalidInputError(PartyFederationError, ValueError):
    """Input is unusable as given; retrying with the same input will fail again."""


class PartyNotFoundError(PartyFederationError, LookupError):
    """A referenced party or duplicate candidate does not exist."""


class IllegalStateError(PartyFederationError, RuntimeError):
    """The party is in a state that does not permit the requested operation."""


__all__ = [
    "IllegalStateError",
    "InvalidInputError",
    "PartyFederationError",
    "PartyNotFoundError",
]
