"""Thread pools for the blocking libraries the API calls into.

bcrypt hashing and boto3 requests both block, so they run on anyio worker
threads. Each gets its own capacity limiter so a burst of image uploads
cannot starve logins of threads, and the other way round.
"""

from __future__ import annotations

from typing import Any, Callable

import anyio
from anyio import to_thread

from storefront.core.config import settings

security_limiter = anyio.CapacityLimiter(settings.SECURITY_MAX_CONCURRENCY)
storage_limiter = anyio.CapacityLimiter(settings.STORAGE_MAX_CONCURRENCY)


async def run_in_thread_storage(func: Callable[..., Any], *args: Any):
    return await to_thread.run_sync(func, *args, limiter=storage_limiter)


async def run_in_thread_security(func: Callable[..., Any], *args: Any):
    return await to_thread.run_sync(func, *args, limiter=security_limiter)
