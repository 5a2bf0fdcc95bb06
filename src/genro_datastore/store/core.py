# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""DataStore - A reactive in-memory record collection.

This module provides the DataStore class, the data engine behind grids, trees,
combo boxes and forms. A DataStore owns an ordered list of records (plain
dicts), publishes an event for every change, and offers a filter/sort query
pipeline plus a hierarchical view over the same flat list.

Key Features:
    - **CRUD with notification**: every mutation publishes a semantic event
      followed by ``update``
    - **Query pipeline**: AND-combined filters, then a multi-key sort, applied
      on demand by get_records() without touching the raw order
    - **Tree projection**: parent-pointer records viewed and edited as a tree
      (see TreeMixin)
    - **Async loading**: load() reads from an injected proxy

Events:
    - add {record, index} / remove {record, index}
    - recordupdate {record, index, changes}
    - clear, update
    - beforeload, load {data}, exception {error}
    - filter {filters}, sort {sorters}
    - nodemove, nodeadd, noderemove (tree operations)
    - error {original_event, error, payload} (listener failures)

Example:
    Basic usage::

        store = DataStore([
            {'id': 1, 'name': 'John', 'age': 30},
            {'id': 2, 'name': 'Jane', 'age': 25},
        ])
        store.subscribe('update', lambda payload: print('changed'))

        store.sort({'property': 'age', 'direction': 'ASC'})
        store.get_records()  # [Jane, John]

        store.filter({'property': 'age', 'operator': 'gte', 'value': 28})
        store.get_records()  # [John]

    Loading from a proxy::

        store = DataStore(proxy=MemoryProxy(rows))
        await store.load()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterator

from ..events import EventPublisher
from ..exceptions import DuplicateIdError
from ..query import (
    Filter,
    Sorter,
    apply_filters,
    apply_sorters,
    strict_eq,
    to_filters,
    to_sorters,
)
from .loading import coerce_records, has_reader, read_proxy
from .tree import TreeMixin

logger = logging.getLogger(__name__)


class DataStore(TreeMixin, EventPublisher):
    """An observable collection of records with filtering, sorting and trees.

    The raw collection returned by get_data() is live and kept in insertion
    order; get_records() computes the filtered and sorted view on each call.

    Records are looked up by identity for remove() and update(record, patch),
    and by their 'id' key for get_by_id() and the tree operations. With
    duplicate ids, the first record in collection order wins.

    Attributes:
        proxy: The data source used by load(), or None.
        is_loading: True while at least one load() awaits the proxy.
        load_task: The task scheduled by auto_load, or None.
        parent_field: Default parent-pointer key for tree operations.
        children_field: Default children key for tree projections.
        root_value: Parent value marking top-level nodes (None always does).
        check_cycles: If True, tree mutations that would create a cycle raise.
        unique_ids: If True, add() rejects a record whose id already exists.

    Example:
        >>> store = DataStore([{'id': 1}, {'id': 2}])
        >>> store.get_by_id(2)
        {'id': 2}
    """

    def __init__(
        self,
        data: list[dict[str, Any]] | None = None,
        proxy: Any | None = None,
        filters: Any = None,
        sorters: Any = None,
        auto_load: bool = False,
        parent_field: str = 'parent_id',
        children_field: str = 'children',
        root_value: Any = None,
        check_cycles: bool = True,
        unique_ids: bool = False,
        debug: bool = False,
    ) -> None:
        """Initialize a DataStore.

        Args:
            data: Initial records. A list is kept by reference.
            proxy: Object with a read() method used by load().
            filters: Initial filter or filters (Filter or dict).
            sorters: Initial sorter or sorters (Sorter or dict).
            auto_load: If True and a proxy is set, schedule load() on the
                running event loop.
            parent_field: Default parent-pointer key for tree operations.
            children_field: Default children key for to_tree().
            root_value: Parent value marking top-level nodes.
            check_cycles: Reject move_node()/add_child_node() calls that
                would make a node its own ancestor.
            unique_ids: Reject add() of a record whose id already exists.
            debug: Enable publisher diagnostics (see EventPublisher).

        Example:
            >>> DataStore([{'id': 1, 'age': 30}], sorters={'property': 'age'})
            >>> DataStore(proxy=MemoryProxy(rows), auto_load=True)
        """
        super().__init__(debug=debug)
        self._data: list[dict[str, Any]] = coerce_records(data)
        self._filters: list[Filter] = to_filters(filters)
        self._sorters: list[Sorter] = to_sorters(sorters)
        self.proxy = proxy
        self._pending_loads = 0
        self.load_task: asyncio.Task | None = None
        self.parent_field = parent_field
        self.children_field = children_field
        self.root_value = root_value
        self.check_cycles = check_cycles
        self.unique_ids = unique_ids

        if auto_load and proxy is not None:
            self._schedule_load()

    def _schedule_load(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("auto_load requested but no event loop is running")
            return
        self.load_task = loop.create_task(self.load())

    # ==================== Special Methods ====================

    def __repr__(self) -> str:
        return (
            f"DataStore({len(self._data)} records, "
            f"{len(self._filters)} filters, {len(self._sorters)} sorters)"
        )

    def __len__(self) -> int:
        """Return the number of records in the filtered and sorted view."""
        return self.get_count()

    def __iter__(self) -> Iterator[dict[str, Any]]:
        """Iterate over the filtered and sorted view."""
        return iter(self.get_records())

    @property
    def filters(self) -> list[Filter]:
        """Active filters, in application order (a copy)."""
        return list(self._filters)

    @property
    def sorters(self) -> list[Sorter]:
        """Active sorters, in priority order (a copy)."""
        return list(self._sorters)

    @property
    def is_loading(self) -> bool:
        """True while at least one load() is awaiting its proxy."""
        return self._pending_loads > 0

    def _index_by_identity(self, record: Any) -> int:
        for i, candidate in enumerate(self._data):
            if candidate is record:
                return i
        return -1

    # ==================== Loading ====================

    async def load(self) -> list[dict[str, Any]]:
        """Replace the collection with the records read from the proxy.

        Publishes ``beforeload``, then ``load {data}`` and ``update`` on
        success. On failure publishes ``exception {error}`` and re-raises.

        Returns:
            The loaded records, or [] when no proxy is configured (no events
            are published in that case).
        """
        if not has_reader(self.proxy):
            logger.warning("No proxy configured for store")
            return []

        self._pending_loads += 1
        self.publish('beforeload')
        try:
            data = await read_proxy(self.proxy)
        except Exception as error:
            self._pending_loads -= 1
            self.publish('exception', {'error': error})
            raise
        except asyncio.CancelledError:
            self._pending_loads -= 1
            raise

        self._data = data
        self._pending_loads -= 1
        self.publish('load', {'data': data})
        self.publish('update')
        return data

    def load_data(self, data: Any) -> DataStore:
        """Synchronously replace the collection.

        Args:
            data: List of records (kept by reference). Anything that is not a
                list or tuple loads as an empty collection.
        """
        self._data = coerce_records(data)
        self.publish('load', {'data': self._data})
        self.publish('update')
        return self

    def set_data(self, data: Any) -> DataStore:
        """Alias of load_data()."""
        return self.load_data(data)

    # ==================== CRUD ====================

    def add(self, record: dict[str, Any]) -> DataStore:
        """Append a record.

        Publishes ``add {record, index}`` then ``update``.

        Raises:
            DuplicateIdError: If unique_ids is set and the id already exists.
        """
        if self.unique_ids:
            record_id = record.get('id')
            if record_id is not None and self.get_by_id(record_id) is not None:
                raise DuplicateIdError(f"Record with id {record_id!r} already exists")
        self._data.append(record)
        self.publish('add', {'record': record, 'index': len(self._data) - 1})
        self.publish('update')
        return self

    def remove(self, record: dict[str, Any]) -> DataStore:
        """Remove a record by identity. Does nothing if it is not stored.

        Publishes ``remove {record, index}`` then ``update``.
        """
        index = self._index_by_identity(record)
        if index != -1:
            del self._data[index]
            self.publish('remove', {'record': record, 'index': index})
            self.publish('update')
        return self

    def remove_at(self, index: int) -> dict[str, Any] | None:
        """Remove the record at a raw collection position.

        Returns:
            The removed record, or None if index is out of range.
        """
        if 0 <= index < len(self._data):
            record = self._data.pop(index)
            self.publish('remove', {'record': record, 'index': index})
            self.publish('update')
            return record
        return None

    def update(
        self, record: dict[str, Any], patch: dict[str, Any] | None = None
    ) -> DataStore:
        """Merge fields into a stored record.

        With a patch, record must be the stored object itself. Without one,
        record is matched by its 'id' and its fields are merged into the
        stored record with that id.

        Publishes ``recordupdate {record, index, changes}`` then ``update``.
        Does nothing if no stored record matches.

        Example:
            >>> store.update(store.get_by_id(1), {'age': 31})
            >>> store.update({'id': 1, 'age': 32})
        """
        if patch is None:
            if not isinstance(record, dict) or 'id' not in record:
                return self
            index = next(
                (i for i, r in enumerate(self._data) if strict_eq(r.get('id'), record['id'])),
                -1,
            )
            if index == -1:
                return self
            stored = self._data[index]
            changes = {
                key: value for key, value in record.items()
                if key != 'id' and not strict_eq(stored.get(key), value)
            }
            stored.update(record)
        else:
            index = self._index_by_identity(record)
            if index == -1:
                return self
            stored = self._data[index]
            stored.update(patch)
            changes = patch

        self.publish('recordupdate', {'record': stored, 'index': index, 'changes': changes})
        self.publish('update')
        return self

    def update_at(self, index: int, patch: dict[str, Any]) -> dict[str, Any] | None:
        """Merge fields into the record at a raw collection position.

        Returns:
            The updated record, or None if index is out of range.
        """
        if 0 <= index < len(self._data):
            stored = self._data[index]
            stored.update(patch)
            self.publish('recordupdate', {'record': stored, 'index': index, 'changes': patch})
            self.publish('update')
            return stored
        return None

    def clear(self) -> DataStore:
        """Remove all records. Publishes ``clear`` then ``update``."""
        self._data = []
        self.publish('clear')
        self.publish('update')
        return self

    # ==================== Query ====================

    def get_data(self) -> list[dict[str, Any]]:
        """Return the raw collection (live, unfiltered, unsorted)."""
        return self._data

    def get_records(self) -> list[dict[str, Any]]:
        """Return a new list: the collection filtered, then sorted."""
        records = apply_filters(self._data, self._filters)
        return apply_sorters(records, self._sorters)

    def get_filtered_data(self) -> list[dict[str, Any]]:
        """Alias of get_records()."""
        return self.get_records()

    def get_count(self) -> int:
        return len(self.get_records())

    def get_at(self, index: int) -> dict[str, Any] | None:
        """Return the record at a position of the view, or None."""
        records = self.get_records()
        if 0 <= index < len(records):
            return records[index]
        return None

    def index_of(self, record: dict[str, Any]) -> int:
        """Return the view position of record (by identity), or -1."""
        for i, candidate in enumerate(self.get_records()):
            if candidate is record:
                return i
        return -1

    def get_by_id(self, record_id: Any) -> dict[str, Any] | None:
        """Return the first raw record whose 'id' equals record_id, or None."""
        for record in self._data:
            if strict_eq(record.get('id'), record_id):
                return record
        return None

    # ==================== Filter / Sort ====================

    def filter(self, filters: Any, replace: bool = False) -> DataStore:
        """Add or replace active filters.

        Args:
            filters: A Filter or dict, or a list of them.
            replace: If True, the given filters become the whole active set.
                Otherwise each one replaces the active filter on the same
                property, or is appended.

        Publishes ``filter {filters}``.

        Raises:
            InvalidFilterError: If a filter is malformed.
        """
        new_filters = to_filters(filters)
        if replace:
            self._filters = new_filters
        else:
            for new_filter in new_filters:
                for i, existing in enumerate(self._filters):
                    if existing.property == new_filter.property:
                        self._filters[i] = new_filter
                        break
                else:
                    self._filters.append(new_filter)
        self.publish('filter', {'filters': self.filters})
        return self

    def clear_filters(self) -> DataStore:
        """Remove every active filter. Publishes ``filter {filters}``."""
        self._filters = []
        self.publish('filter', {'filters': self.filters})
        return self

    def sort(self, sorters: Any) -> DataStore:
        """Replace the active sorters.

        Args:
            sorters: A Sorter or dict, or a list of them, highest priority
                first.

        Publishes ``sort {sorters}``.

        Raises:
            InvalidSorterError: If a sorter is malformed.
        """
        self._sorters = to_sorters(sorters)
        self.publish('sort', {'sorters': self.sorters})
        return self

    def clear_sorters(self) -> DataStore:
        """Remove every active sorter. Publishes ``sort {sorters}``."""
        self._sorters = []
        self.publish('sort', {'sorters': self.sorters})
        return self

    # ==================== Factory ====================

    @classmethod
    def create_tree_store(
        cls, data: list[dict[str, Any]] | None = None, **options: Any
    ) -> DataStore:
        """Create a store meant to back a tree widget.

        Args:
            data: Initial records, flat (parent pointers) or already nested.
            **options: Any DataStore constructor keyword.

        Example:
            >>> store = DataStore.create_tree_store(rows, parent_field='parent')
            >>> store.get_tree_data()
        """
        return cls(data=data if data is not None else [], **options)
