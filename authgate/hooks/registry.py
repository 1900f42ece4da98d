"""
Registry for provider lifecycle hooks.

A hook runs before or after one of the provider's operations, identified
by its path (e.g. "/sign-up/email"). Hooks are registered either
explicitly or by marking methods on a hook container class, and kept in
registration order. Nothing is deduplicated: registering the same
handler twice runs it twice.
"""

from __future__ import annotations

import inspect
import logging
import types
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Iterator

from authgate.provider import HookFn

logger = logging.getLogger(__name__)

_CONTAINER_ATTR = "__auth_hook_container__"
_MARKERS_ATTR = "__auth_hook_markers__"


class HookTiming(str, Enum):
    BEFORE = "before"
    AFTER = "after"


def _validate(path: str | None, match_all: bool) -> None:
    if match_all:
        if path is not None:
            raise ValueError("A match_all hook takes no path")
        return
    if not isinstance(path, str) or not path.startswith("/"):
        raise ValueError(f"Hook path must start with '/', got {path!r}")


@dataclass(frozen=True)
class HookEntry:
    """One registered hook."""

    timing: HookTiming
    path: str | None
    handler: HookFn
    match_all: bool = False

    def __post_init__(self):
        object.__setattr__(self, "timing", HookTiming(self.timing))
        _validate(self.path, self.match_all)

    def matches(self, path: str | None) -> bool:
        return self.match_all or path == self.path


# =============================================================================
# Markers
# =============================================================================


def hook_container(cls: type) -> type:
    """
    Mark a class as holding hook methods.

    Only instances of marked classes are scanned by `discover()`.
    """
    setattr(cls, _CONTAINER_ATTR, True)
    return cls


def _marker(timing: HookTiming, path: str | None, match_all: bool) -> Callable:
    _validate(path, match_all)

    def decorator(func: Callable) -> Callable:
        markers = getattr(func, _MARKERS_ATTR, ())
        setattr(func, _MARKERS_ATTR, (*markers, (timing, path, match_all)))
        return func

    return decorator


def before_hook(path: str | None = None, *, match_all: bool = False) -> Callable:
    """Run the decorated method before the provider operation at `path`."""
    return _marker(HookTiming.BEFORE, path, match_all)


def after_hook(path: str | None = None, *, match_all: bool = False) -> Callable:
    """Run the decorated method after the provider operation at `path`."""
    return _marker(HookTiming.AFTER, path, match_all)


def is_hook_container(cls: type) -> bool:
    return bool(getattr(cls, _CONTAINER_ATTR, False))


def _method_names(cls: type) -> list[str]:
    """Names in definition order, subclass first, overrides collapsed."""
    names: dict[str, None] = {}
    for klass in cls.__mro__:
        if klass is object:
            continue
        for name in vars(klass):
            names.setdefault(name, None)
    return list(names)


def _markers_of(cls: type, name: str) -> tuple:
    raw = inspect.getattr_static(cls, name, None)
    func = getattr(raw, "__func__", raw)
    if not callable(func):
        return ()
    return getattr(func, _MARKERS_ATTR, ())


def discover(instances: Iterable[Any]) -> Iterator[HookEntry]:
    """
    Yield a hook entry for every marked method of every container.

    Lazy; call again to rescan. Order follows `instances`, then method
    definition order within each class.
    """
    for instance in instances:
        cls = type(instance)
        if not is_hook_container(cls):
            continue

        for name in _method_names(cls):
            for timing, path, match_all in _markers_of(cls, name):
                yield HookEntry(timing, path, getattr(instance, name), match_all)


# =============================================================================
# Registry
# =============================================================================


class HookRegistry:
    """
    Ordered hook registrations for one provider.

    Usage:
        hooks = HookRegistry()

        @hooks.after("/sign-up/email")
        async def welcome(ctx: HookContext):
            ...

        hooks.register_handler(audit, [("before", "/sign-in/email", "record")])
        hooks.register_instances([SignUpHooks(), ...])
    """

    def __init__(self):
        self._entries: list[HookEntry] = []

    def add(
        self,
        timing: HookTiming | str,
        path: str | None,
        handler: HookFn,
        *,
        match_all: bool = False,
    ) -> HookEntry:
        """Register one hook."""
        entry = HookEntry(HookTiming(timing), path, handler, match_all)
        self._entries.append(entry)
        return entry

    def before(self, path: str | None = None, *, match_all: bool = False) -> Callable:
        """Decorator registering a function as a before hook."""
        def decorator(func: HookFn) -> HookFn:
            self.add(HookTiming.BEFORE, path, func, match_all=match_all)
            return func
        return decorator

    def after(self, path: str | None = None, *, match_all: bool = False) -> Callable:
        """Decorator registering a function as an after hook."""
        def decorator(func: HookFn) -> HookFn:
            self.add(HookTiming.AFTER, path, func, match_all=match_all)
            return func
        return decorator

    def register_handler(
        self,
        instance: Any,
        hooks: Iterable[tuple[HookTiming | str, str | None, str | Callable]],
    ) -> list[HookEntry]:
        """
        Register `(timing, path, callback)` hooks owned by `instance`.

        `callback` is a method name, or a plain function taking
        `(instance, ctx)`. A `None` path registers a match-all hook.
        """
        entries = []
        for timing, path, callback in hooks:
            if isinstance(callback, str):
                handler = getattr(instance, callback)
            elif inspect.isfunction(callback):
                handler = types.MethodType(callback, instance)
            else:
                handler = callback
            entries.append(self.add(timing, path, handler, match_all=path is None))
        return entries

    def register_instances(self, instances: Iterable[Any]) -> list[HookEntry]:
        """Register every marked hook found on `instances`."""
        entries = list(discover(instances))
        self._entries.extend(entries)
        logger.debug(f"Discovered {len(entries)} hook(s)")
        return entries

    def entries(self, timing: HookTiming | str | None = None) -> list[HookEntry]:
        """Registered hooks in order, optionally for one timing."""
        if timing is None:
            return list(self._entries)
        timing = HookTiming(timing)
        return [e for e in self._entries if e.timing is timing]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HookEntry]:
        return iter(list(self._entries))
