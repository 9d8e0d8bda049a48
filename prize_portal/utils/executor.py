"""
Shared thread pool for blocking calls (bcrypt hashing, SMTP delivery).
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

_executor: Optional[ThreadPoolExecutor] = None


def get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="prize-portal")
    return _executor


async def run_blocking(func: Callable[..., Any], *args: Any) -> Any:
    """Run func(*args) on the shared pool without blocking the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(get_executor(), func, *args)


def shutdown_executor() -> None:
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=False)
        _executor = None
