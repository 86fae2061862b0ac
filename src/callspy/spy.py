"""The forwarding wrapper that counts qualifying invocations."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field

from callspy.config import DEFAULT_MAX_RECORDED_CALLS
from callspy.predicates import ArgsMatcher, PositionalPredicate, PredicateChain
from callspy.snapshot import Snapshot, TargetKey

logger = logging.getLogger(__name__)


class Call(BaseModel):
    """A single recorded invocation of a spied callable."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = Field(default_factory=dict)
    counted: bool = False
    returned: Any = None
    raised: BaseException | None = None
    error: Exception | None = None  # raised by a filter or callback
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Spy:
    """Per-target wrapper state.

    Every invocation is forwarded to the original implementation and its
    result is returned unchanged. The counter only moves for calls that
    satisfy every predicate added through :meth:`with_args` and :meth:`when`.

    Spies are created by a :class:`~callspy.registry.SpyRegistry`; once
    restored, only ``call_count``, ``calls`` and ``restored`` stay meaningful.
    """

    def __init__(
        self,
        key: TargetKey,
        snapshot: Snapshot,
        *,
        record_calls: bool = True,
        max_recorded_calls: int | None = DEFAULT_MAX_RECORDED_CALLS,
    ) -> None:
        self.key = key
        self.snapshot = snapshot
        self._chain = PredicateChain()
        self._callbacks: list[PositionalPredicate] = []
        self._count = 0
        self._record_calls = record_calls
        self._calls: deque[Call] = deque(maxlen=max_recorded_calls)
        self._restored = False
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self.key.name

    @property
    def call_count(self) -> int:
        """Number of invocations that satisfied the predicate chain."""
        with self._lock:
            return self._count

    @property
    def called(self) -> bool:
        return self.call_count > 0

    @property
    def calls(self) -> list[Call]:
        """Recorded invocations, oldest first, counted or not."""
        with self._lock:
            return list(self._calls)

    @property
    def restored(self) -> bool:
        return self._restored

    @property
    def predicates(self) -> PredicateChain:
        return self._chain

    def with_args(self, *args: Any, **kwargs: Any) -> Self:
        """Only count calls made with exactly these arguments."""
        self._chain.append(ArgsMatcher(args=args, kwargs=kwargs))
        return self

    def when(self, predicate: Callable[..., Any]) -> Self:
        """Only count calls for which ``predicate`` returns a truthy value.

        The predicate is called with the call's positional arguments, bound
        positionally: surplus arguments are dropped and missing required
        parameters receive ``ABSENT``. Keyword arguments are only passed to
        predicates that accept ``**kwargs``.
        """
        self._chain.append(PositionalPredicate.wrap(predicate))
        return self

    def then(self, callback: Callable[..., Any]) -> Self:
        """Run ``callback`` with the call's arguments after each counted call.

        Callbacks run once the chain has matched, before the counter moves,
        and also for calls where the original raised. The return value is
        ignored.
        """
        self._callbacks.append(PositionalPredicate.wrap(callback))
        return self

    def reset(self) -> None:
        """Zero the counter and forget recorded calls."""
        with self._lock:
            self._count = 0
            self._calls.clear()

    def invoke(self, original: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        """Forward a call to ``original``, counting it if the chain matches.

        The original always runs first and the caller gets its result or
        exception untouched. The chain and the ``then`` callbacks are
        evaluated afterwards, whether the original returned or raised. If
        one of them raises, the call is left uncounted, the error is kept
        on the recorded :class:`Call` and logged.
        """
        if self._restored:
            return original(*args, **kwargs)

        try:
            result = original(*args, **kwargs)
        except BaseException as exc:
            self._observe(args, kwargs, raised=exc)
            raise

        self._observe(args, kwargs, returned=result)
        return result

    def mark_restored(self) -> None:
        self._restored = True

    def _observe(self, args: tuple[Any, ...], kwargs: dict[str, Any], **outcome: Any) -> None:
        counted = False
        error: Exception | None = None
        try:
            if self._chain.matches(args, kwargs):
                for callback in self._callbacks:
                    callback.invoke(args, kwargs)
                counted = True
        except Exception as exc:
            error = exc
            logger.warning(
                "not counting call to %s.%s: filter or callback raised %r",
                self.snapshot.receiver_description,
                self.key.name,
                exc,
            )

        with self._lock:
            if counted:
                self._count += 1
            if self._record_calls:
                self._calls.append(Call(args=args, kwargs=kwargs, counted=counted, error=error, **outcome))

    def __repr__(self) -> str:
        state = "restored" if self._restored else "live"
        return (
            f"<Spy {self.snapshot.receiver_description}.{self.key.name} "
            f"mode={self.key.mode} calls={self._count} {state}>"
        )
