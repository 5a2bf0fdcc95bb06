# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""DataStore exceptions."""

from __future__ import annotations


class DataStoreError(Exception):
    """Base exception for DataStore errors."""

    pass


class InvalidFilterError(DataStoreError, ValueError):
    """Raised when a filter has no property or an unknown operator."""

    pass


class InvalidSorterError(DataStoreError, ValueError):
    """Raised when a sorter has no property or an unknown direction."""

    pass


class TreeCycleError(DataStoreError, ValueError):
    """Raised when a tree mutation would make a node its own ancestor."""

    pass


class DuplicateIdError(DataStoreError, ValueError):
    """Raised when adding a record whose id already exists in a unique store."""

    pass
