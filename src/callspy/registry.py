"""Process-wide table of live spies."""

from __future__ import annotations

import logging
import threading
from typing import Any, Final

from callspy.config import SpyConfig
from callspy.engine import InterceptionEngine, resolve_slot_name
from callspy.errors import AlreadySpiedError, InvalidArgumentError, MethodNotSpiedError
from callspy.snapshot import InterceptionMode, Snapshot, TargetKey, describe
from callspy.spy import Spy

logger = logging.getLogger(__name__)


class _RestoreAll:
    """Sentinel accepted by :meth:`SpyRegistry.restore` to restore everything."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "ALL"


ALL: Final = _RestoreAll()


class SpyRegistry:
    """Owns every live spy, keyed by :class:`TargetKey`.

    All installs and restores run under one re-entrant lock, so a snapshot is
    taken and consumed exactly once and the table never holds a half-installed
    entry. Test runners should call :meth:`restore_all` after each test.
    """

    __slots__ = ("_spies", "_lock", "_engine", "config")

    def __init__(self, config: SpyConfig | None = None, engine: InterceptionEngine | None = None) -> None:
        self._spies: dict[TargetKey, Spy] = {}
        self._lock = threading.RLock()
        self._engine = engine or InterceptionEngine()
        self.config = config or SpyConfig()

    def on(self, *args: Any) -> Spy:
        """Spy on ``name`` of ``target``: ``registry.on(target, name)``.

        A class target intercepts calls made through the class (static and
        class methods); any other target intercepts calls on that object only.
        """
        target, name = self._target_and_name("on", args)
        with self._lock:
            if isinstance(target, type):
                spy = self._engine.install_on_type(target, name, self._spy_factory)
            else:
                spy = self._engine.install_on_instance(target, name, self._spy_factory)
            self._spies[spy.key] = spy
            return spy

    def on_any_instance(self, *args: Any) -> Spy:
        """Spy on ``name`` for every instance of ``cls``, past and future."""
        cls, name = self._target_and_name("on_any_instance", args)
        if not isinstance(cls, type):
            raise InvalidArgumentError(f"on_any_instance() expects a class, got {describe(cls)}")
        with self._lock:
            spy = self._engine.install_on_any_instance(cls, name, self._spy_factory)
            self._spies[spy.key] = spy
            return spy

    def restore(self, *args: Any) -> None:
        """Restore one target, or everything with ``restore(ALL)``.

        For a class target the type-mode spy is restored; when there is none,
        an any-instance spy on the same method is restored instead.
        """
        if len(args) == 1 and args[0] is ALL:
            self.restore_all()
            return
        target, name = self._target_and_name("restore", args)
        if isinstance(target, type):
            self._restore_key(target, name, InterceptionMode.TYPE, InterceptionMode.ANY_INSTANCE)
        else:
            self._restore_key(target, name, InterceptionMode.INSTANCE)

    def restore_any_instance(self, cls: type, name: str) -> None:
        """Restore a spy installed with :meth:`on_any_instance`."""
        self._restore_key(cls, name, InterceptionMode.ANY_INSTANCE)

    def restore_all(self) -> None:
        """Restore every live spy, newest first, and empty the registry."""
        with self._lock:
            for key in reversed(list(self._spies)):
                self._release(key)

    def get(self, target: Any, name: str, mode: InterceptionMode | None = None) -> Spy | None:
        """Return the live spy for a target, if there is one."""
        if mode is None:
            mode = InterceptionMode.TYPE if isinstance(target, type) else InterceptionMode.INSTANCE
        with self._lock:
            return self._spies.get(self._key(target, name, mode))

    def spies(self) -> list[Spy]:
        """Live spies in install order."""
        with self._lock:
            return list(self._spies.values())

    def _spy_factory(self, snapshot: Snapshot) -> Spy:
        # Runs under the lock, before the engine touches the slot; the caller
        # records the spy once the install succeeded.
        key = TargetKey.for_target(snapshot.receiver, snapshot.slot_name, snapshot.mode)
        if key in self._spies:
            raise AlreadySpiedError(snapshot.receiver_description, snapshot.slot_name)
        return Spy(
            key,
            snapshot,
            record_calls=self.config.record_calls,
            max_recorded_calls=self.config.max_recorded_calls,
        )

    def _restore_key(self, target: Any, name: str, *modes: InterceptionMode) -> None:
        with self._lock:
            for mode in modes:
                key = self._key(target, name, mode)
                if key in self._spies:
                    self._release(key)
                    return
        raise MethodNotSpiedError(describe(target), name)

    def _release(self, key: TargetKey) -> None:
        spy = self._spies[key]
        self._engine.restore(spy.snapshot)
        spy.mark_restored()
        del self._spies[key]
        logger.debug("released %r", spy)

    def _key(self, target: Any, name: str, mode: InterceptionMode) -> TargetKey:
        cls = target if isinstance(target, type) else type(target)
        return TargetKey.for_target(target, resolve_slot_name(cls, name), mode)

    @staticmethod
    def _target_and_name(operation: str, args: tuple[Any, ...]) -> tuple[Any, str]:
        if len(args) != 2:
            raise InvalidArgumentError(
                f"{operation}() takes exactly 2 arguments (target, name), got {len(args)}"
            )
        target, name = args
        if not isinstance(name, str):
            raise InvalidArgumentError(f"{operation}() method name must be a str, got {type(name).__name__}")
        return target, name

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._spies

    def __len__(self) -> int:
        with self._lock:
            return len(self._spies)


_default_registry: SpyRegistry | None = None
_default_lock = threading.Lock()


def get_registry() -> SpyRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            _default_registry = SpyRegistry(SpyConfig.load())
        return _default_registry


def reset_registry() -> None:
    """Restore every spy in the process-wide registry and discard it."""
    global _default_registry
    with _default_lock:
        registry, _default_registry = _default_registry, None
    if registry is not None:
        registry.restore_all()
