"""callspy - transparent call spies for test doubles."""

__version__ = "0.1.0"

from typing import Any

from callspy.config import SpyConfig
from callspy.engine import InterceptionEngine
from callspy.errors import (
    AlreadySpiedError,
    InvalidArgumentError,
    MethodNotSpiedError,
    NoSuchMethodError,
    SpyError,
)
from callspy.predicates import ABSENT
from callspy.registry import ALL, SpyRegistry, get_registry, reset_registry
from callspy.snapshot import InterceptionMode, MethodKind, TargetKey, Visibility
from callspy.spy import Call, Spy


def on(*args: Any) -> Spy:
    """Spy on ``name`` of ``target`` in the process-wide registry."""
    return get_registry().on(*args)


def on_any_instance(*args: Any) -> Spy:
    """Spy on ``name`` for every instance of ``cls`` in the process-wide registry."""
    return get_registry().on_any_instance(*args)


def restore(*args: Any) -> None:
    """Restore ``(target, name)``, or everything with ``restore(ALL)``."""
    get_registry().restore(*args)


def restore_all() -> None:
    """Restore every spy in the process-wide registry."""
    get_registry().restore_all()


__all__ = [
    "ABSENT",
    "ALL",
    "AlreadySpiedError",
    "Call",
    "InterceptionEngine",
    "InterceptionMode",
    "InvalidArgumentError",
    "MethodKind",
    "MethodNotSpiedError",
    "NoSuchMethodError",
    "Spy",
    "SpyConfig",
    "SpyError",
    "SpyRegistry",
    "TargetKey",
    "Visibility",
    "get_registry",
    "on",
    "on_any_instance",
    "reset_registry",
    "restore",
    "restore_all",
]
