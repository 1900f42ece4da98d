"""Hooks shipped with authgate."""

from __future__ import annotations

from authgate.hooks.registry import after_hook, hook_container
from authgate.provider import HookContext, ProviderError


@hook_container
class ProviderErrorHook:
    """
    Re-raise provider errors the provider would otherwise answer itself.

    Some providers return their error as the operation result instead of
    raising it; raising it here lets the app's exception handlers render it.
    """

    @after_hook(match_all=True)
    async def handle(self, ctx: HookContext) -> None:
        if isinstance(ctx.returned, ProviderError):
            raise ctx.returned
