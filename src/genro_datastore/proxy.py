# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Data proxies consumed by DataStore.load().

A proxy is any object with a ``read()`` method returning the records, either
directly or as an awaitable. DataStore awaits the result when needed, so
synchronous and asynchronous sources plug in the same way.
"""

from __future__ import annotations

import copy
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable


@runtime_checkable
class DataProxy(Protocol):
    """Source of records for DataStore.load()."""

    def read(self) -> Awaitable[list[dict[str, Any]]] | list[dict[str, Any]]:
        ...


class MemoryProxy:
    """Proxy serving a fixed list of records.

    Each read returns fresh shallow copies, so loading twice never shares
    record objects between loads.

    Example:
        >>> proxy = MemoryProxy([{'id': 1}])
        >>> store = DataStore(proxy=proxy)
        >>> await store.load()
        [{'id': 1}]
    """

    def __init__(self, records: list[dict[str, Any]] | None = None) -> None:
        self.records = list(records or [])

    async def read(self) -> list[dict[str, Any]]:
        return [copy.copy(record) for record in self.records]


class CallableProxy:
    """Proxy delegating read() to a sync or async callable."""

    def __init__(self, reader: Callable[[], Any]) -> None:
        self.reader = reader

    def read(self) -> Any:
        return self.reader()
