"""Predicates over call arguments and their AND-composition."""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Final


class _Absent:
    """Value bound to predicate parameters the call did not supply."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Final = _Absent()

Predicate = Callable[[tuple[Any, ...], dict[str, Any]], bool]


@dataclass(frozen=True, slots=True)
class ArgsMatcher:
    """Matches calls whose arguments equal the expected ones exactly."""

    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)

    def __call__(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> bool:
        if len(args) != len(self.args):
            return False
        if any(actual != expected for actual, expected in zip(args, self.args, strict=True)):
            return False
        return kwargs == self.kwargs


@dataclass(frozen=True, slots=True)
class Arity:
    """Positional arity of a user function."""

    required: int
    optional: int
    variadic: bool
    takes_kwargs: bool

    @classmethod
    def of(cls, fn: Callable[..., Any]) -> Arity:
        try:
            signature = inspect.signature(fn)
        except (TypeError, ValueError):
            # Builtins without introspectable signatures get everything.
            return cls(required=0, optional=0, variadic=True, takes_kwargs=True)

        required = optional = 0
        variadic = takes_kwargs = False
        for param in signature.parameters.values():
            if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
                if param.default is param.empty:
                    required += 1
                else:
                    optional += 1
            elif param.kind is param.VAR_POSITIONAL:
                variadic = True
            elif param.kind is param.VAR_KEYWORD:
                takes_kwargs = True
        return cls(required=required, optional=optional, variadic=variadic, takes_kwargs=takes_kwargs)

    def bind(self, args: tuple[Any, ...]) -> tuple[Any, ...]:
        """Truncate or pad ``args`` to fit this arity.

        Extra arguments are dropped unless the function is variadic. Missing
        required parameters are padded with ``ABSENT``; missing optional ones
        keep their defaults.
        """
        if self.variadic:
            if len(args) >= self.required:
                return args
            return args + (ABSENT,) * (self.required - len(args))
        declared = self.required + self.optional
        if len(args) >= declared:
            return args[:declared]
        if len(args) >= self.required:
            return args
        return args + (ABSENT,) * (self.required - len(args))


@dataclass(frozen=True, slots=True)
class PositionalPredicate:
    """Wraps a user function so it can be called with any argument list."""

    fn: Callable[..., Any]
    arity: Arity

    @classmethod
    def wrap(cls, fn: Callable[..., Any]) -> PositionalPredicate:
        if not callable(fn):
            raise TypeError(f"predicate must be callable, got {type(fn).__name__}")
        return cls(fn=fn, arity=Arity.of(fn))

    def invoke(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        bound = self.arity.bind(args)
        if self.arity.takes_kwargs:
            return self.fn(*bound, **kwargs)
        return self.fn(*bound)

    def __call__(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> bool:
        return bool(self.invoke(args, kwargs))


class PredicateChain:
    """Ordered predicates combined with AND. Empty means always true."""

    __slots__ = ("_predicates",)

    def __init__(self, predicates: list[Predicate] | None = None) -> None:
        self._predicates: list[Predicate] = list(predicates or [])

    def append(self, predicate: Predicate) -> None:
        self._predicates.append(predicate)

    def matches(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> bool:
        """Evaluate predicates in order, stopping at the first false one."""
        return all(predicate(args, kwargs) for predicate in self._predicates)

    def __iter__(self) -> Iterator[Predicate]:
        return iter(list(self._predicates))

    def __len__(self) -> int:
        return len(self._predicates)
