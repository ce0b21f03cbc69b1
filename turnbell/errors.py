from __future__ import annotations


class TurnbellError(Exception):
    pass


class BackendUnavailable(TurnbellError):
    """The durable store could not be reached or refused the operation.

    Network, permission and quota failures all land here. `FallbackStorage` treats this
    as the signal to switch to in-memory storage for the rest of the process.
    """


class InvalidInput(TurnbellError, ValueError):
    """Caller supplied malformed or missing data. Never triggers a fallback."""
