"""
Roundwatch error taxonomy.

Resolution errors surface only on the manual paths; the sweep catches and
logs them. Oracle errors never leave the scoring engine or the composer.
"""


class RoundwatchError(Exception):
    """Base class for all roundwatch errors."""

    pass


class ResolutionError(RoundwatchError):
    """A referenced record (round, hackathon, team, ...) does not exist."""

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")


class OracleError(RoundwatchError):
    """The advisory oracle is unavailable, timed out or answered garbage."""

    pass


class ConnectionRejected(RoundwatchError):
    """A live connection failed authentication."""

    NO_CREDENTIAL = "no credential presented"
    INVALID_CREDENTIAL = "credential invalid"
    IDENTITY_NOT_FOUND = "identity not found"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Authentication error: {reason}")
