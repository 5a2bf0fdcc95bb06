# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""DataStore package - Reactive record collection.

This package provides the DataStore class, an observable list of records
with a filter/sort query pipeline and a tree view over parent pointers.

The package is organized into:
- core: Main DataStore class with CRUD, query, filter/sort and loading
- tree: Hierarchical projection and mutation (TreeMixin)
- loading: Helpers for coercing data and reading from proxies

Example:
    >>> from genro_datastore import DataStore
    >>> store = DataStore([{'id': 1, 'name': 'John'}])
    >>> store.add({'id': 2, 'name': 'Jane'})
    >>> store.get_count()
    2
"""

from .core import DataStore
from .tree import TreeMixin, flatten_tree

__all__ = ["DataStore", "TreeMixin", "flatten_tree"]
