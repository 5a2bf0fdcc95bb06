# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Hierarchical operations over a flat record collection.

A flat list represents a tree through a parent-pointer field: each record's
``parent_field`` holds the id of its parent, and records whose pointer is
None (or the store's ``root_value``) are top-level nodes.

Queries run over the store's current view (get_records()), so filters and
sorters shape the tree. Results are recomputed on every call.

Orphans, records whose parent id is not in the view, are left out of
to_tree(). Traversals remember the records they visited and stop on a
repeat, so cyclic parent chains terminate.

Example:
    >>> store = DataStore([
    ...     {'id': 1, 'parent_id': None, 'name': 'root'},
    ...     {'id': 2, 'parent_id': 1, 'name': 'child'},
    ... ])
    >>> store.to_tree()
    [{'id': 1, 'parent_id': None, 'name': 'root', 'children': [
        {'id': 2, 'parent_id': 1, 'name': 'child', 'children': []}]}]
    >>> [n['id'] for n in store.get_node_path(2)]
    [1, 2]
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from ..exceptions import TreeCycleError
from ..query import strict_eq, strict_key

if TYPE_CHECKING:
    from .core import DataStore


def flatten_tree(
    tree_data: Any,
    parent_field: str = 'parent_id',
    children_field: str = 'children',
    parent_id: Any = None,
) -> list[dict[str, Any]]:
    """Flatten nested nodes into parent-pointer records.

    Every node is shallow-copied, stamped with parent_id in parent_field and
    stripped of children_field. Output is in pre-order. Input is not modified.

    Args:
        tree_data: List of nested nodes. Anything else yields [].
        parent_field: Key receiving the parent id.
        children_field: Key holding each node's children.
        parent_id: Parent id stamped on the top-level nodes.
    """
    flat: list[dict[str, Any]] = []
    if not isinstance(tree_data, list):
        return flat
    for node in tree_data:
        flat_node = dict(node)
        flat_node[parent_field] = parent_id
        children = flat_node.pop(children_field, None)
        flat.append(flat_node)
        if children:
            flat.extend(
                flatten_tree(children, parent_field, children_field, node.get('id'))
            )
    return flat


class TreeMixin:
    """Tree projection and mutation for DataStore.

    Every method accepts optional field overrides; when omitted they default
    to the store's parent_field, children_field and root_value.
    """

    # ==================== Helpers ====================

    def _pf(self: DataStore, parent_field: str | None) -> str:
        return parent_field if parent_field is not None else self.parent_field

    def _is_root(self: DataStore, parent: Any, root_value: Any) -> bool:
        return parent is None or strict_eq(parent, root_value)

    def _id_index(self, records: list[dict[str, Any]]) -> dict[Any, dict[str, Any]]:
        """Map strict_key(id) -> first record with that id."""
        index: dict[Any, dict[str, Any]] = {}
        for record in records:
            record_id = record.get('id')
            if record_id is not None:
                index.setdefault(strict_key(record_id), record)
        return index

    def _creates_cycle(
        self: DataStore, node_id: Any, new_parent_id: Any, parent_field: str
    ) -> bool:
        """True if new_parent_id is node_id or one of its descendants.

        Walks the ancestor chain of new_parent_id over the raw collection.
        """
        index = self._id_index(self.get_data())
        seen: set[int] = set()
        ancestor = new_parent_id
        while not self._is_root(ancestor, self.root_value):
            if strict_eq(ancestor, node_id):
                return True
            record = index.get(strict_key(ancestor))
            if record is None or id(record) in seen:
                return False
            seen.add(id(record))
            ancestor = record.get(parent_field)
        return False

    # ==================== Projection ====================

    def to_tree(
        self: DataStore,
        parent_field: str | None = None,
        children_field: str | None = None,
        root_value: Any = None,
    ) -> list[dict[str, Any]]:
        """Build nested nodes from the current view.

        Each record with an id is shallow-copied and given an empty children
        list. Roots are records whose parent is None or root_value; others
        are appended to their parent's children. Records whose parent is not
        in the view are dropped. The store is not modified.

        Args:
            parent_field: Parent-pointer key (default: store setting).
            children_field: Key for the children lists (default: store setting).
            root_value: Parent value marking roots (default: store setting).

        Returns:
            List of root nodes.
        """
        parent_field = self._pf(parent_field)
        children_field = children_field if children_field is not None else self.children_field
        if root_value is None:
            root_value = self.root_value

        nodes: list[tuple[dict[str, Any], dict[str, Any]]] = []
        index: dict[Any, dict[str, Any]] = {}
        for record in self.get_records():
            record_id = record.get('id')
            if record_id is None:
                continue
            clone = {**record, children_field: []}
            index.setdefault(strict_key(record_id), clone)
            nodes.append((record, clone))

        tree: list[dict[str, Any]] = []
        for record, clone in nodes:
            parent = record.get(parent_field)
            if self._is_root(parent, root_value):
                tree.append(clone)
            else:
                parent_node = index.get(strict_key(parent))
                if parent_node is not None:
                    parent_node[children_field].append(clone)
        return tree

    def from_tree(
        self: DataStore,
        tree_data: Any,
        parent_field: str | None = None,
        children_field: str | None = None,
        parent_id: Any = None,
    ) -> list[dict[str, Any]]:
        """Flatten nested nodes back to records. Does not modify the store.

        See flatten_tree().
        """
        return flatten_tree(
            tree_data,
            self._pf(parent_field),
            children_field if children_field is not None else self.children_field,
            parent_id,
        )

    def get_tree_data(self: DataStore, children_field: str | None = None) -> list[dict[str, Any]]:
        """Return the view as nested nodes.

        If the first stored record already carries children_field the data
        is taken to be nested and get_records() is returned unchanged;
        otherwise the flat data is projected with to_tree().
        """
        children_field = children_field if children_field is not None else self.children_field
        data = self.get_data()
        if data and data[0].get(children_field):
            return self.get_records()
        return self.to_tree(children_field=children_field)

    # ==================== Structural queries ====================

    def get_node_children(
        self: DataStore, node_id: Any, parent_field: str | None = None
    ) -> list[dict[str, Any]]:
        """Return all descendants of node_id in pre-order."""
        parent_field = self._pf(parent_field)
        by_parent: dict[Any, list[dict[str, Any]]] = {}
        for record in self.get_records():
            by_parent.setdefault(strict_key(record.get(parent_field)), []).append(record)

        descendants: list[dict[str, Any]] = []
        seen: set[int] = set()
        stack = list(reversed(by_parent.get(strict_key(node_id), [])))
        while stack:
            record = stack.pop()
            record_id = record.get('id')
            if id(record) in seen or strict_eq(record_id, node_id):
                continue
            seen.add(id(record))
            descendants.append(record)
            if record_id is not None:
                stack.extend(reversed(by_parent.get(strict_key(record_id), [])))
        return descendants

    def get_node_path(
        self: DataStore, node_id: Any, parent_field: str | None = None
    ) -> list[dict[str, Any]]:
        """Return the records from the root ancestor down to node_id.

        Returns [] if node_id is not in the view. On a cyclic parent chain
        the path starts at the first record that would repeat.
        """
        parent_field = self._pf(parent_field)
        index = self._id_index(self.get_records())

        path: list[dict[str, Any]] = []
        seen: set[int] = set()
        current = index.get(strict_key(node_id))
        while current is not None and id(current) not in seen:
            seen.add(id(current))
            path.append(current)
            parent = current.get(parent_field)
            current = index.get(strict_key(parent)) if parent is not None else None
        path.reverse()
        return path

    def get_root_nodes(
        self: DataStore, parent_field: str | None = None, root_value: Any = None
    ) -> list[dict[str, Any]]:
        """Return the records of the view with no parent."""
        parent_field = self._pf(parent_field)
        if root_value is None:
            root_value = self.root_value
        return [
            record for record in self.get_records()
            if self._is_root(record.get(parent_field), root_value)
        ]

    def get_direct_children(
        self: DataStore, node_id: Any, parent_field: str | None = None
    ) -> list[dict[str, Any]]:
        """Return the records of the view whose parent is node_id."""
        parent_field = self._pf(parent_field)
        return [r for r in self.get_records() if strict_eq(r.get(parent_field), node_id)]

    def has_children(self: DataStore, node_id: Any, parent_field: str | None = None) -> bool:
        parent_field = self._pf(parent_field)
        return any(strict_eq(r.get(parent_field), node_id) for r in self.get_records())

    # ==================== Mutation ====================

    def move_node(
        self: DataStore,
        node_id: Any,
        new_parent_id: Any,
        parent_field: str | None = None,
    ) -> dict[str, Any] | None:
        """Reparent a node in place.

        Publishes ``nodemove {node_id, new_parent_id, node}`` then ``update``.

        Returns:
            The moved record, or None if node_id is not stored.

        Raises:
            TreeCycleError: If check_cycles is set and new_parent_id is the
                node itself or one of its descendants.
        """
        parent_field = self._pf(parent_field)
        node = self.get_by_id(node_id)
        if node is None:
            return None
        if self.check_cycles and self._creates_cycle(node_id, new_parent_id, parent_field):
            raise TreeCycleError(
                f"Cannot move node {node_id!r} under {new_parent_id!r}: "
                f"{new_parent_id!r} is the node or one of its descendants"
            )
        node[parent_field] = new_parent_id
        self.publish('nodemove', {
            'node_id': node_id, 'new_parent_id': new_parent_id, 'node': node,
        })
        self.publish('update')
        return node

    def add_child_node(
        self: DataStore,
        node_data: dict[str, Any],
        parent_id: Any = None,
        parent_field: str | None = None,
    ) -> dict[str, Any]:
        """Add a copy of node_data under parent_id.

        Publishes the ``add`` and ``update`` events of add(), then
        ``nodeadd {node, parent_id}``.

        Returns:
            The stored record (a shallow copy of node_data).

        Raises:
            TreeCycleError: If check_cycles is set and the node's id is on
                the ancestor chain of parent_id.
        """
        parent_field = self._pf(parent_field)
        node = dict(node_data)
        node[parent_field] = parent_id
        node_id = node.get('id')
        if (
            self.check_cycles
            and node_id is not None
            and self._creates_cycle(node_id, parent_id, parent_field)
        ):
            raise TreeCycleError(
                f"Cannot add node {node_id!r} under {parent_id!r}: "
                f"the id is already one of its ancestors"
            )
        self.add(node)
        self.publish('nodeadd', {'node': node, 'parent_id': parent_id})
        return node

    def remove_node_with_children(
        self: DataStore, node_id: Any, parent_field: str | None = None
    ) -> dict[str, Any] | None:
        """Remove a node and all its descendants.

        Descendants are collected first, then each is removed with remove()
        (publishing its own ``remove``/``update`` pair), then the node.
        Finally publishes ``noderemove {node_id, node, children_removed}``.

        Returns:
            The removed node record, or None if node_id is not stored (its
            descendants in the view are still removed).
        """
        children = self.get_node_children(node_id, parent_field)
        node = self.get_by_id(node_id)
        for child in children:
            self.remove(child)
        if node is not None:
            self.remove(node)
            self.publish('noderemove', {
                'node_id': node_id, 'node': node, 'children_removed': len(children),
            })
        return node
