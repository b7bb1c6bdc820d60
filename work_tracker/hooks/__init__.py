"""
Hook dispatch and the write-coordinator that triggers it.
"""

from .coordinator import WorkWriter
from .dispatcher import HookConfig, HookDispatcher, HookHandler
from .events import HookContext, HookResult, HookType
from .handlers import register_default_hooks

__all__ = [
    "HookConfig",
    "HookContext",
    "HookDispatcher",
    "HookHandler",
    "HookResult",
    "HookType",
    "WorkWriter",
    "register_default_hooks",
]
