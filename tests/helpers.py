"""Helpers shared by the test modules."""

import asyncio

BASE_URL = "http://backend.test"
API_KEY = "anon-key"


async def _resolve(awaitable):
    return await awaitable


def run(awaitable):
    """Drive a coroutine or any awaitable (query builders included) to completion."""
    return asyncio.run(_resolve(awaitable))
