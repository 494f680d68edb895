"""Cache invalidation hooks run after gallery mutations."""

import threading
from collections.abc import Callable

from ..logging_config import get_logger

logger = get_logger(__name__)

# Listing pages that show gallery assets
GALLERY_PATHS = ("/", "/zh", "/gallery", "/zh/gallery", "/admin/gallery")

InvalidationHook = Callable[[list[str]], None]

_hooks: list[InvalidationHook] = []
_hooks_lock = threading.Lock()


def register_invalidation_hook(hook: InvalidationHook) -> None:
    """Register a callable that receives the list of paths to revalidate."""
    with _hooks_lock:
        if hook not in _hooks:
            _hooks.append(hook)


def unregister_invalidation_hook(hook: InvalidationHook) -> None:
    with _hooks_lock:
        if hook in _hooks:
            _hooks.remove(hook)


def invalidate_gallery_caches(paths: tuple[str, ...] | list[str] = GALLERY_PATHS) -> None:
    """
    Notify every registered hook that the gallery listings changed.

    A failing hook is logged and skipped; the mutation that triggered the
    invalidation has already happened.
    """
    with _hooks_lock:
        hooks = list(_hooks)

    for hook in hooks:
        try:
            hook(list(paths))
        except Exception as e:
            logger.error("cache_invalidation_hook_failed", hook=getattr(hook, "__name__", repr(hook)), error=str(e))

    logger.info("gallery_caches_invalidated", paths=list(paths), hook_count=len(hooks))
