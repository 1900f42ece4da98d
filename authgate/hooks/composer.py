"""
Hook composition - splice registered hooks into the provider.

The provider calls exactly one function per timing. We build that
function as a right-nested chain: each link first awaits everything
registered before it, then runs its own handler if the operation path
matches. The first registration therefore always runs first, and hooks
the provider already had keep running ahead of ours.
"""

from __future__ import annotations

import inspect
import logging
import weakref
from typing import Any, Iterable

from authgate.hooks.registry import HookEntry, HookRegistry, HookTiming
from authgate.provider import AuthProvider, HookContext, HookFn, HookSlots

logger = logging.getLogger(__name__)


async def _call(hook: HookFn, ctx: HookContext) -> None:
    result = hook(ctx)
    if inspect.isawaitable(result):
        await result


def _link(previous: HookFn | None, entry: HookEntry) -> HookFn:
    # `previous` is captured here, once; later slot replacement elsewhere
    # does not change this chain.
    async def composed(ctx: HookContext) -> None:
        if previous is not None:
            await _call(previous, ctx)
        if entry.matches(ctx.path):
            await _call(entry.handler, ctx)

    composed.__qualname__ = f"composed_{entry.timing.value}_hook"
    return composed


def compose(entries: Iterable[HookEntry], previous: HookFn | None = None) -> HookFn | None:
    """
    Fold hooks into a single callable, oldest first.

    Returns `previous` unchanged when there is nothing to add.
    """
    hook = previous
    for entry in entries:
        hook = _link(hook, entry)
    return hook


# =============================================================================
# Provider slots
# =============================================================================


def _read_slot(hooks: Any, timing: HookTiming) -> HookFn | None:
    # HookSlots and plain dicts both answer .get()
    return hooks.get(timing.value)


def _write_slot(hooks: Any, timing: HookTiming, hook: HookFn) -> None:
    if isinstance(hooks, dict):
        hooks[timing.value] = hook
    else:
        hooks.set(timing.value, hook)


def ensure_hook_slots(provider: AuthProvider) -> HookSlots | dict[str, HookFn]:
    """Return the provider's hooks object, creating an empty one if missing."""
    if provider.options.hooks is None:
        provider.options.hooks = HookSlots()
    return provider.options.hooks


class HookComposer:
    """
    Installs a registry's hooks into a provider, once, at startup.

    Slots are only ever wrapped, never reset, so hooks set on the
    provider before this runs keep firing.
    """

    def __init__(self, registry: HookRegistry):
        self.registry = registry
        self._installed: weakref.WeakSet[AuthProvider] = weakref.WeakSet()

    def install(self, provider: AuthProvider) -> None:
        if provider in self._installed:
            logger.warning("Hooks already installed on this provider - skipping")
            return

        hooks = ensure_hook_slots(provider)
        for timing in HookTiming:
            entries = self.registry.entries(timing)
            if not entries:
                continue
            previous = _read_slot(hooks, timing)
            _write_slot(hooks, timing, compose(entries, previous))
            logger.debug(f"Installed {len(entries)} {timing.value} hook(s)")

        self._installed.add(provider)
