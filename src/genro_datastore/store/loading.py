# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Loading helpers for DataStore.

Functions to coerce incoming record collections and to read from a proxy
whose read() may be synchronous or asynchronous.
"""

from __future__ import annotations

import inspect
from typing import Any


def coerce_records(data: Any) -> list[dict[str, Any]]:
    """Return data if it is a list, a list copy of a tuple, else [].

    A list is returned as-is so the store keeps the caller's reference.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, tuple):
        return list(data)
    return []


def has_reader(proxy: Any) -> bool:
    """True if proxy exposes a callable read()."""
    return proxy is not None and callable(getattr(proxy, 'read', None))


async def read_proxy(proxy: Any) -> list[dict[str, Any]]:
    """Call proxy.read(), awaiting the result when it is awaitable.

    Raises:
        Whatever the proxy raises.
    """
    result = proxy.read()
    if inspect.isawaitable(result):
        result = await result
    return coerce_records(result)
