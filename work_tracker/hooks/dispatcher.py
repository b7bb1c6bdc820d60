"""
Hook dispatcher: named handlers per event type, run sequentially or
concurrently with a bounded number of handlers in flight.

Handlers take a ``HookContext`` and may be coroutine functions or plain
callables; plain callables run in a worker thread. Each invocation is bounded
by ``HookConfig.timeout``. A timed-out handler is abandoned, not killed: a
thread may keep running after the dispatcher stops waiting for it.
"""

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import structlog
from pydantic import BaseModel, Field

from ..errors import HookFailureError
from .events import HookContext, HookResult, HookType

logger = structlog.get_logger(__name__)

HookHandler = Callable[[HookContext], Union[Awaitable[Any], Any]]


class HookConfig(BaseModel):
    """Dispatcher configuration."""

    enabled: bool = True
    timeout: float = Field(default=5.0, gt=0, description="Seconds per handler")
    continue_on_error: bool = True
    max_concurrent_hooks: int = Field(default=10, ge=1)

    @classmethod
    def from_settings(cls, settings) -> "HookConfig":
        return cls(
            enabled=settings.hooks_enabled,
            timeout=settings.hook_timeout_seconds,
            continue_on_error=settings.hook_continue_on_error,
            max_concurrent_hooks=settings.hook_max_concurrent,
        )


def _is_async(handler: HookHandler) -> bool:
    return inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
        getattr(handler, "__call__", None)
    )


class HookDispatcher:
    """Registry and executor for hook handlers."""

    def __init__(self, config: Optional[HookConfig] = None):
        self.config = config or HookConfig()
        self._handlers: Dict[HookType, List[Tuple[str, HookHandler]]] = {}

    def register(self, hook_type: HookType, name: str, handler: HookHandler) -> None:
        """Register ``handler`` under ``name``; registration order is execution order."""
        hook_type = HookType(hook_type)
        self._handlers.setdefault(hook_type, []).append((name, handler))
        logger.debug("hook_registered", hook_type=hook_type.value, hook=name)

    def get_handler_count(self, hook_type: HookType) -> int:
        return len(self._handlers.get(HookType(hook_type), []))

    def clear(self) -> None:
        self._handlers.clear()

    def _handlers_for(self, context: HookContext) -> List[Tuple[str, HookHandler]]:
        if not self.config.enabled:
            return []
        return list(self._handlers.get(context.event_type, []))

    async def _run_handler(
        self, name: str, handler: HookHandler, context: HookContext
    ) -> HookResult:
        hook_logger = logger.bind(hook=name, hook_event=context.event_type.value)
        started = time.perf_counter()
        try:
            if _is_async(handler):
                outcome = await asyncio.wait_for(handler(context), self.config.timeout)
            else:
                outcome = await asyncio.wait_for(
                    asyncio.to_thread(handler, context), self.config.timeout
                )
        except asyncio.TimeoutError:
            error = f"hook timed out after {self.config.timeout}s"
            hook_logger.warning("hook_timeout", timeout=self.config.timeout)
            return HookResult(
                hook_name=name,
                success=False,
                error=error,
                duration=time.perf_counter() - started,
            )
        except Exception as e:
            hook_logger.warning("hook_failed", error=str(e))
            return HookResult(
                hook_name=name,
                success=False,
                error=f"{type(e).__name__}: {e}",
                duration=time.perf_counter() - started,
            )

        return HookResult(
            hook_name=name,
            success=True,
            duration=time.perf_counter() - started,
            metadata=outcome if isinstance(outcome, dict) else {},
        )

    async def execute_sync(self, context: HookContext) -> List[HookResult]:
        """Run handlers one at a time in registration order on the shared context.

        When ``continue_on_error`` is off, the first failure raises
        ``HookFailureError`` and the remaining handlers are not run.
        """
        results: List[HookResult] = []
        for name, handler in self._handlers_for(context):
            result = await self._run_handler(name, handler, context)
            results.append(result)
            if not result.success and not self.config.continue_on_error:
                raise HookFailureError(f"hook {name} failed: {result.error}", results)
        return results

    async def execute(self, context: HookContext) -> List[HookResult]:
        """Run every handler exactly once, at most ``max_concurrent_hooks`` at a time.

        Each handler receives its own snapshot of ``context``. The call returns
        after all handlers finish; results are in registration order. When
        ``continue_on_error`` is off, any failure raises ``HookFailureError``
        once everything has finished.
        """
        handlers = self._handlers_for(context)
        if not handlers:
            return []

        semaphore = asyncio.Semaphore(self.config.max_concurrent_hooks)

        async def run(name: str, handler: HookHandler) -> HookResult:
            async with semaphore:
                return await self._run_handler(name, handler, context.snapshot())

        results = list(await asyncio.gather(*(run(n, h) for n, h in handlers)))

        failed = [r for r in results if not r.success]
        if failed and not self.config.continue_on_error:
            raise HookFailureError(
                f"{len(failed)} of {len(results)} hooks failed: "
                + ", ".join(r.hook_name for r in failed),
                results,
            )
        return results
