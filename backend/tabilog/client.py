# backend/tabilog/client.py
import asyncio
import logging
import threading
from typing import Dict

import aiohttp

from tabilog.errors import MalformedResponse, ProviderUnavailable

logger = logging.getLogger(__name__)


async def fetch_json(url: str, params: Dict, timeout: float = 10) -> Dict:
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    try:
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.get(url, params=params) as response:
                if response.status != 200:
                    raise ProviderUnavailable(f"{url} returned HTTP {response.status}")
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise MalformedResponse(f"{url} returned invalid JSON: {e}")
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise ProviderUnavailable(f"{url} connection error: {e!r}")

    if not isinstance(data, dict):
        raise MalformedResponse(f"{url} returned {type(data).__name__}, expected an object")
    return data


class RequestDeduplicator:
    """Shares one in-flight coroutine between concurrent callers with the same key.

    Flask runs every async view on its own event loop, so requests are only
    shared between callers on the same loop.
    """

    def __init__(self):
        self.pending_requests = {}
        self._lock = threading.Lock()

    async def deduplicate_request(self, key: str, request_func):
        loop_key = (id(asyncio.get_running_loop()), key)
        with self._lock:
            task = self.pending_requests.get(loop_key)
            if task is None:
                task = asyncio.ensure_future(request_func())
                self.pending_requests[loop_key] = task
                task.add_done_callback(lambda done: self._forget(loop_key, done))
        return await asyncio.shield(task)

    def _forget(self, loop_key, task) -> None:
        with self._lock:
            if self.pending_requests.get(loop_key) is task:
                del self.pending_requests[loop_key]
