"""Substitution and restoration of callables on live objects and classes.

Three slots can be rewritten:

- an object's own ``__dict__`` (instance mode), which shadows the class
  attribute for that object only;
- a class ``__dict__`` with a descriptor that intercepts access through the
  class object (type mode);
- a class ``__dict__`` with a descriptor that intercepts access through any
  instance (any-instance mode). Attribute lookup happens at call time, so
  instances created before the install are covered as well.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from callspy.errors import AlreadySpiedError, InvalidArgumentError, NoSuchMethodError
from callspy.snapshot import (
    InterceptionMode,
    MethodKind,
    Snapshot,
    classify_kind,
    classify_visibility,
    describe,
)

if TYPE_CHECKING:
    from callspy.spy import Spy

logger = logging.getLogger(__name__)

SpyFactory = Callable[[Snapshot], "Spy"]

_MISSING: Any = object()


def _bind(raw: Any, instance: Any, owner: type | None) -> Any:
    """Resolve a raw slot value the way attribute lookup would."""
    getter = getattr(type(raw), "__get__", None)
    if getter is None:
        return raw
    return getter(raw, instance, owner)


def _is_data_descriptor(raw: Any) -> bool:
    kind = type(raw)
    return hasattr(kind, "__set__") or hasattr(kind, "__delete__")


def _is_special(name: str) -> bool:
    return len(name) > 4 and name.startswith("__") and name.endswith("__")


def _forwarder(spy: Spy, target: Callable[..., Any]) -> Callable[..., Any]:
    @functools.wraps(target)
    def spied(*args: Any, **kwargs: Any) -> Any:
        return spy.invoke(target, args, kwargs)

    spied.__spy__ = spy  # type: ignore[attr-defined]
    return spied


def spy_of(value: Any) -> Spy | None:
    """Return the spy behind an intercepted slot value, if any."""
    if isinstance(value, SpyDescriptor):
        return value.spy
    return getattr(value, "__spy__", None) if callable(value) else None


class SpyDescriptor:
    """Class-slot replacement used by type and any-instance modes.

    Access through the intercepted side (the class for type mode, instances
    for any-instance mode) yields a forwarding wrapper; access through the
    other side yields the original exactly as before.
    """

    __slots__ = ("spy", "original", "mode")

    def __init__(self, spy: Spy, original: Any, mode: InterceptionMode) -> None:
        self.spy = spy
        self.original = original
        self.mode = mode

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        snapshot = self.spy.snapshot
        if instance is not None and snapshot.kind is MethodKind.BOUND:
            # Metaclass methods were never reachable through instances
            raise AttributeError(
                f"{type(instance).__qualname__!r} object has no attribute {snapshot.slot_name!r}"
            )
        target = _bind(self.original, instance, owner)
        if self.mode is InterceptionMode.TYPE:
            intercept = instance is None
        else:
            intercept = instance is not None
        if not intercept:
            return target
        return _forwarder(self.spy, target)

    def __repr__(self) -> str:
        return f"<SpyDescriptor {self.mode} for {self.original!r}>"


class InterceptionEngine:
    """Installs and removes forwarding wrappers.

    The engine is stateless; the registry owns the snapshots it returns.
    """

    def install_on_instance(self, obj: Any, name: str, spy_factory: SpyFactory) -> Spy:
        """Intercept ``name`` on ``obj`` only."""
        if isinstance(obj, type):
            raise InvalidArgumentError(f"expected an instance, got class {obj.__qualname__}")
        if _is_special(name):
            raise InvalidArgumentError(
                f"{name} is looked up on the type, not on {describe(obj)}; use on_any_instance instead"
            )
        instance_dict = getattr(obj, "__dict__", None)
        if not isinstance(instance_dict, dict):
            raise InvalidArgumentError(
                f"{describe(obj)} has no instance __dict__; spy on its class instead"
            )

        slot = resolve_slot_name(type(obj), name)
        own = instance_dict.get(slot, _MISSING)
        if own is not _MISSING:
            if spy_of(own) is not None:
                raise AlreadySpiedError(describe(obj), slot)
            original, kind = own, classify_kind(own)
        else:
            original, kind = self._resolve_through_class(obj, slot)

        if not callable(original):
            raise NoSuchMethodError(describe(obj), slot, reason="has a non-callable attribute")

        snapshot = Snapshot(
            receiver=obj,
            slot_name=slot,
            mode=InterceptionMode.INSTANCE,
            visibility=classify_visibility(slot, type(obj)),
            kind=kind,
            original=None if own is _MISSING else own,
            had_own_slot=own is not _MISSING,
        )
        spy = spy_factory(snapshot)
        instance_dict[slot] = _forwarder(spy, original)
        logger.debug("installed instance spy on %s.%s", describe(obj), slot)
        return spy

    def install_on_type(self, cls: type, name: str, spy_factory: SpyFactory) -> Spy:
        """Intercept ``name`` when called through ``cls`` (or a subclass)."""
        return self._install_on_class(cls, name, InterceptionMode.TYPE, spy_factory)

    def install_on_any_instance(self, cls: type, name: str, spy_factory: SpyFactory) -> Spy:
        """Intercept ``name`` when called through any instance of ``cls``."""
        return self._install_on_class(cls, name, InterceptionMode.ANY_INSTANCE, spy_factory)

    def restore(self, snapshot: Snapshot) -> None:
        """Put the snapshot's original back into the slot it came from."""
        receiver, slot = snapshot.receiver, snapshot.slot_name
        if snapshot.mode is InterceptionMode.INSTANCE:
            instance_dict = receiver.__dict__
            if snapshot.had_own_slot:
                instance_dict[slot] = snapshot.original
            else:
                instance_dict.pop(slot, None)
        elif snapshot.had_own_slot:
            setattr(receiver, slot, snapshot.original)
        elif slot in vars(receiver):
            delattr(receiver, slot)
        logger.debug("restored %s spy on %s.%s", snapshot.mode, describe(receiver), slot)

    def _resolve_through_class(self, obj: Any, slot: str) -> tuple[Any, MethodKind]:
        cls = type(obj)
        raw = lookup_class_slot(cls, slot)
        if raw is _MISSING:
            try:
                return getattr(obj, slot), MethodKind.BOUND
            except AttributeError:
                raise NoSuchMethodError(describe(obj), slot) from None
        if isinstance(raw, SpyDescriptor):
            # Bind the unspied original so instance and any-instance spies never chain.
            raw = raw.original
        if _is_data_descriptor(raw):
            raise NoSuchMethodError(describe(obj), slot, reason="has a non-method attribute")
        return _bind(raw, obj, cls), classify_kind(raw)

    def _install_on_class(
        self,
        cls: type,
        name: str,
        mode: InterceptionMode,
        spy_factory: SpyFactory,
    ) -> Spy:
        if not isinstance(cls, type):
            raise InvalidArgumentError(f"expected a class, got {describe(cls)}")

        slot = resolve_slot_name(cls, name)
        own = vars(cls).get(slot, _MISSING)
        if isinstance(own, SpyDescriptor):
            raise AlreadySpiedError(cls.__qualname__, slot)

        raw = lookup_class_slot(cls, slot)
        if raw is _MISSING:
            if mode is InterceptionMode.ANY_INSTANCE:
                raise NoSuchMethodError(cls.__qualname__, slot)
            try:
                raw = getattr(cls, slot)
            except AttributeError:
                raise NoSuchMethodError(cls.__qualname__, slot) from None
            kind = MethodKind.BOUND
        else:
            if isinstance(raw, SpyDescriptor):
                raw = raw.original
            kind = classify_kind(raw)

        if _is_data_descriptor(raw):
            raise NoSuchMethodError(cls.__qualname__, slot, reason="has a non-method attribute")
        if not (callable(raw) or isinstance(raw, (staticmethod, classmethod))):
            raise NoSuchMethodError(cls.__qualname__, slot, reason="has a non-callable attribute")

        snapshot = Snapshot(
            receiver=cls,
            slot_name=slot,
            mode=mode,
            visibility=classify_visibility(slot, cls),
            kind=kind,
            original=None if own is _MISSING else own,
            had_own_slot=own is not _MISSING,
        )
        spy = spy_factory(snapshot)
        try:
            setattr(cls, slot, SpyDescriptor(spy, raw, mode))
        except TypeError as exc:
            raise InvalidArgumentError(f"cannot intercept {cls.__qualname__}.{slot}: {exc}") from exc
        logger.debug("installed %s spy on %s.%s", mode, cls.__qualname__, slot)
        return spy


def resolve_slot_name(cls: type, name: str) -> str:
    """Map an unmangled private name to the mangled attribute that defines it."""
    if name.startswith("__") and not name.endswith("__"):
        for klass in cls.__mro__:
            mangled = f"_{klass.__name__.lstrip('_')}{name}"
            if mangled in vars(klass):
                return mangled
    return name


def lookup_class_slot(cls: type, slot: str) -> Any:
    """Find the raw value of ``slot`` along the MRO, or a missing marker."""
    for klass in cls.__mro__:
        if slot in vars(klass):
            return vars(klass)[slot]
    return _MISSING
