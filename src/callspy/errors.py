"""Errors raised by the interception entry points."""


class SpyError(Exception):
    """Base class for all callspy errors."""


class InvalidArgumentError(SpyError, TypeError):
    """Raised when an entry point is called with malformed arguments."""


class NoSuchMethodError(SpyError, AttributeError):
    """Raised when the named callable does not resolve on the receiver."""

    def __init__(self, receiver: str, name: str, reason: str = "has no method") -> None:
        super().__init__(f"{receiver} {reason} {name!r}")
        self.receiver = receiver
        self.name = name


class AlreadySpiedError(SpyError):
    """Raised when a target is already intercepted."""

    def __init__(self, receiver: str, name: str) -> None:
        super().__init__(f"{receiver}.{name} is already being spied on")
        self.receiver = receiver
        self.name = name


class MethodNotSpiedError(SpyError):
    """Raised when restoring a target that is not intercepted."""

    def __init__(self, receiver: str, name: str) -> None:
        super().__init__(f"{receiver}.{name} is not being spied on")
        self.receiver = receiver
        self.name = name
