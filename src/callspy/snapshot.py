"""Snapshots of intercepted callables and the keys that identify them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class InterceptionMode(StrEnum):
    """Which slot an interception rewrites."""

    INSTANCE = "instance"  # the object's own __dict__
    TYPE = "type"  # the class __dict__, reached through the class
    ANY_INSTANCE = "any_instance"  # the class __dict__, reached through instances


class Visibility(StrEnum):
    """Naming-convention visibility of an attribute."""

    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"


class MethodKind(StrEnum):
    """How the original callable is stored in its slot."""

    FUNCTION = "function"
    STATICMETHOD = "staticmethod"
    CLASSMETHOD = "classmethod"
    CALLABLE = "callable"
    BOUND = "bound"  # only reachable through the metaclass


def classify_visibility(name: str, cls: type | None = None) -> Visibility:
    """Classify an attribute name.

    Both ``__secret`` and its mangled form ``_Klass__secret`` are private;
    the mangled form is only recognised for a class in ``cls``'s MRO, so
    ``_get__x`` stays protected. Dunder names such as ``__call__`` are public.
    """
    if name.endswith("__"):
        return Visibility.PUBLIC
    if name.startswith("__"):
        return Visibility.PRIVATE
    if cls is not None and _is_mangled(name, cls):
        return Visibility.PRIVATE
    if name.startswith("_"):
        return Visibility.PROTECTED
    return Visibility.PUBLIC


def _is_mangled(name: str, cls: type) -> bool:
    for klass in cls.__mro__:
        prefix = f"_{klass.__name__.lstrip('_')}__"
        if name.startswith(prefix) and len(name) > len(prefix):
            return True
    return False


def classify_kind(raw: Any) -> MethodKind:
    """Classify a raw slot value (as stored in a ``__dict__``)."""
    if isinstance(raw, staticmethod):
        return MethodKind.STATICMETHOD
    if isinstance(raw, classmethod):
        return MethodKind.CLASSMETHOD
    if hasattr(raw, "__get__") and hasattr(raw, "__code__"):
        return MethodKind.FUNCTION
    return MethodKind.CALLABLE


def describe(receiver: Any) -> str:
    """Human-readable receiver description for error messages."""
    if isinstance(receiver, type):
        return receiver.__qualname__
    return f"<{type(receiver).__qualname__} object at {id(receiver):#x}>"


@dataclass(frozen=True, slots=True)
class TargetKey:
    """Identity of an interception: receiver identity, method name and mode."""

    receiver_id: int
    name: str
    mode: InterceptionMode

    @classmethod
    def for_target(cls, receiver: Any, name: str, mode: InterceptionMode) -> TargetKey:
        return cls(receiver_id=id(receiver), name=name, mode=mode)


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Everything needed to put an intercepted slot back exactly as it was.

    ``slot_name`` is the attribute actually rewritten, which differs from the
    requested name for private names given in their unmangled form.
    ``original`` is the raw slot value when ``had_own_slot`` is true; when the
    receiver did not own the slot, restoration deletes it instead.
    """

    receiver: Any
    slot_name: str
    mode: InterceptionMode
    visibility: Visibility
    kind: MethodKind
    original: Any = None
    had_own_slot: bool = False

    @property
    def receiver_description(self) -> str:
        return describe(self.receiver)
