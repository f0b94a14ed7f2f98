"""Cancellable delayed calls: a new schedule() supersedes the pending one."""
import asyncio
import inspect
import sys
from typing import Any, Callable, Optional


class Debouncer:
    """Run only the most recently scheduled callback, after a quiet period.

    Each call to schedule() cancels whatever is still waiting, so only the
    last callback scheduled within the delay window ever runs.
    """

    def __init__(self, delay: float, name: str = "Debouncer"):
        self.delay = delay
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        """True while a scheduled callback has not finished yet."""
        return self._task is not None and not self._task.done()

    def schedule(self, callback: Callable[..., Any], *args: Any) -> asyncio.Task:
        """Schedule callback(*args) after the delay, cancelling any pending call.

        The callback may be a plain function or a coroutine function.

        Returns:
            The task wrapping the delayed call
        """
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(callback, args))
        return self._task

    def cancel(self) -> None:
        """Cancel the pending call, if any."""
        if self.pending:
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        """Wait for the pending call to finish (no-op if nothing is pending)."""
        if self._task is None:
            return
        await asyncio.wait([self._task])

    async def _run(self, callback: Callable[..., Any], args: tuple) -> None:
        await asyncio.sleep(self.delay)
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            print(f"[{self.name}] Scheduled call failed: {e}", file=sys.stderr)
