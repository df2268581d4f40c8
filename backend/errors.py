from __future__ import annotations


class IllegalAction(ValueError):
    """A bid or card that fails the legality rules."""


class OutOfTurn(IllegalAction):
    """An action submitted by a seat that is not on turn."""


class StaleSnapshot(Exception):
    def __init__(self, applied: int, received: int):
        super().__init__(f"snapshot v{received} is older than applied v{applied}")
        self.applied = applied
        self.received = received


class ChannelDisconnect(ConnectionError):
    """Transport lost and reconnect attempts exhausted."""


class OraclePolicyFailure(RuntimeError):
    pass
