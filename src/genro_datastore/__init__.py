# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Genro-DataStore - Reactive in-memory data engine.

A lightweight, zero-dependency library providing the observable record store
behind data-bound widgets (grids, trees, combo boxes, forms): a synchronous
event publisher, filter/sort queries and a tree view over flat records.
"""

__version__ = "0.1.0"

from .events import EventPublisher
from .exceptions import (
    DataStoreError,
    DuplicateIdError,
    InvalidFilterError,
    InvalidSorterError,
    TreeCycleError,
)
from .proxy import CallableProxy, DataProxy, MemoryProxy
from .query import Filter, Sorter
from .store import DataStore, flatten_tree

__all__ = [
    # Core classes
    "DataStore",
    "EventPublisher",
    # Query descriptors
    "Filter",
    "Sorter",
    # Proxies
    "DataProxy",
    "MemoryProxy",
    "CallableProxy",
    # Tree helpers
    "flatten_tree",
    # Exceptions
    "DataStoreError",
    "InvalidFilterError",
    "InvalidSorterError",
    "TreeCycleError",
    "DuplicateIdError",
]
