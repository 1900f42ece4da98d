"""
Provider lifecycle hooks.

- registry: where hooks are registered (explicitly or via markers)
- composer: folds them into the provider's before/after slots
- builtin: hooks authgate installs itself
"""

from authgate.hooks.composer import HookComposer, compose
from authgate.hooks.registry import (
    HookEntry,
    HookRegistry,
    HookTiming,
    after_hook,
    before_hook,
    discover,
    hook_container,
)

__all__ = [
    "HookRegistry",
    "HookEntry",
    "HookTiming",
    "HookComposer",
    "compose",
    "discover",
    "hook_container",
    "before_hook",
    "after_hook",
]
