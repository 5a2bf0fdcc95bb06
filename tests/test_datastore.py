# Copyright 2025 Softwell S.r.l. - Genropy Team
# SPDX-License-Identifier: Apache-2.0

"""Tests for DataStore CRUD, queries, filtering, sorting and loading."""

import asyncio

import pytest

from genro_datastore import (
    CallableProxy,
    DataStore,
    DuplicateIdError,
    Filter,
    InvalidFilterError,
    MemoryProxy,
    Sorter,
)


def make_store(**kwargs):
    return DataStore([
        {'id': 1, 'name': 'John', 'age': 30},
        {'id': 2, 'name': 'Jane', 'age': 25},
    ], **kwargs)


class Recorder:
    """Collects (event, payload) pairs for a set of events."""

    EVENTS = (
        'add', 'remove', 'recordupdate', 'update', 'clear', 'beforeload',
        'load', 'exception', 'filter', 'sort', 'error',
    )

    def __init__(self, store):
        self.events = []
        for event in self.EVENTS:
            store.subscribe(event, self._listener(event))

    def _listener(self, event):
        def listener(payload):
            self.events.append((event, payload))
        return listener

    @property
    def names(self):
        return [name for name, _ in self.events]


class TestDataStoreBasic:
    """Tests for construction and raw access."""

    def test_empty_store(self):
        store = DataStore()
        assert store.get_data() == []
        assert store.get_records() == []
        assert store.get_count() == 0
        assert len(store) == 0

    def test_get_data_is_live(self):
        """Test get_data returns the stored list itself."""
        rows = [{'id': 1}]
        store = DataStore(rows)
        assert store.get_data() is rows
        store.add({'id': 2})
        assert rows == [{'id': 1}, {'id': 2}]

    def test_get_records_is_fresh(self):
        store = make_store()
        records = store.get_records()
        assert records == store.get_data()
        assert records is not store.get_data()

    def test_iteration_follows_view(self):
        store = make_store(sorters={'property': 'age'})
        assert [r['name'] for r in store] == ['Jane', 'John']

    def test_initial_filters_and_sorters(self):
        store = make_store(filters=[{'property': 'age', 'operator': 'lt', 'value': 50}],
                           sorters=Sorter('name'))
        assert store.filters == [Filter('age', 'lt', 50)]
        assert store.sorters == [Sorter('name')]

    def test_repr(self):
        assert repr(make_store()) == 'DataStore(2 records, 0 filters, 0 sorters)'


class TestCrud:
    """Tests for add, remove, update and clear."""

    def test_add(self):
        store = make_store()
        rec = Recorder(store)
        record = {'id': 3, 'name': 'Bob'}
        assert store.add(record) is store
        assert store.get_data()[-1] is record
        assert rec.events == [('add', {'record': record, 'index': 2}), ('update', None)]

    def test_remove_by_reference(self):
        store = make_store()
        jane = store.get_by_id(2)
        rec = Recorder(store)
        store.remove(jane)
        assert store.get_by_id(2) is None
        assert rec.events == [('remove', {'record': jane, 'index': 1}), ('update', None)]

    def test_remove_uses_identity_not_equality(self):
        """Test an equal but distinct dict is not removed."""
        store = make_store()
        rec = Recorder(store)
        store.remove({'id': 1, 'name': 'John', 'age': 30})
        assert store.get_count() == 2
        assert rec.events == []

    def test_remove_at(self):
        store = make_store()
        rec = Recorder(store)
        removed = store.remove_at(0)
        assert removed['name'] == 'John'
        assert rec.names == ['remove', 'update']
        assert rec.events[0][1]['index'] == 0

    def test_remove_at_out_of_range(self):
        store = make_store()
        rec = Recorder(store)
        assert store.remove_at(5) is None
        assert store.remove_at(-1) is None
        assert rec.events == []

    def test_update_with_patch(self):
        store = make_store()
        john = store.get_by_id(1)
        rec = Recorder(store)
        store.update(john, {'age': 31})
        assert john['age'] == 31
        assert rec.events == [
            ('recordupdate', {'record': john, 'index': 0, 'changes': {'age': 31}}),
            ('update', None),
        ]

    def test_update_by_id(self):
        """Test single-argument update matches by id and reports changes."""
        store = make_store()
        rec = Recorder(store)
        store.update({'id': 2, 'name': 'Jane', 'age': 26, 'city': 'Rome'})
        jane = store.get_by_id(2)
        assert jane['age'] == 26
        assert jane['city'] == 'Rome'
        name, payload = rec.events[0]
        assert name == 'recordupdate'
        assert payload['record'] is jane
        assert payload['index'] == 1
        assert payload['changes'] == {'age': 26, 'city': 'Rome'}
        assert rec.names == ['recordupdate', 'update']

    def test_update_absent_id_is_silent(self):
        store = make_store()
        rec = Recorder(store)
        store.update({'id': 99, 'name': 'Nobody'})
        store.update({'name': 'no id'})
        assert store.get_by_id(99) is None
        assert rec.events == []

    def test_update_unknown_reference_is_silent(self):
        store = make_store()
        rec = Recorder(store)
        store.update({'id': 1}, {'age': 99})
        assert store.get_by_id(1)['age'] == 30
        assert rec.events == []

    def test_update_by_boolean_id_does_not_match_number(self):
        store = DataStore([{'id': 1, 'flag': 1}])
        rec = Recorder(store)
        store.update({'id': True, 'flag': 2})
        assert store.get_by_id(1)['flag'] == 1
        assert rec.events == []

    def test_update_bool_for_number_is_a_change(self):
        """Test replacing 1 with True is reported as a change."""
        store = DataStore([{'id': 1, 'flag': 1}])
        rec = Recorder(store)
        store.update({'id': 1, 'flag': True})
        assert store.get_by_id(1)['flag'] is True
        assert rec.events[0][1]['changes'] == {'flag': True}

    def test_update_at(self):
        store = make_store()
        rec = Recorder(store)
        record = store.update_at(1, {'age': 40})
        assert record is store.get_by_id(2)
        assert record['age'] == 40
        assert rec.names == ['recordupdate', 'update']
        assert store.update_at(9, {'age': 1}) is None

    def test_clear(self):
        store = make_store()
        rec = Recorder(store)
        store.clear()
        assert store.get_data() == []
        assert rec.events == [('clear', None), ('update', None)]

    def test_load_data(self):
        store = make_store()
        rec = Recorder(store)
        rows = [{'id': 10}]
        store.load_data(rows)
        assert store.get_data() is rows
        assert rec.events == [('load', {'data': rows}), ('update', None)]

    def test_load_data_rejects_non_list(self):
        store = make_store()
        store.set_data('not a list')
        assert store.get_data() == []

    def test_duplicate_ids_allowed_by_default(self):
        """Test get_by_id returns the first record with a duplicate id."""
        store = make_store()
        dup = {'id': 1, 'name': 'Second John'}
        store.add(dup)
        assert store.get_by_id(1)['name'] == 'John'

    def test_unique_ids_rejects_duplicate(self):
        store = make_store(unique_ids=True)
        with pytest.raises(DuplicateIdError):
            store.add({'id': 1})
        store.add({'name': 'no id'})
        assert store.get_count() == 3


class TestEventPairing:
    """Every collection mutation emits one semantic event then one update."""

    @pytest.mark.parametrize('mutate, semantic', [
        (lambda s: s.add({'id': 3}), 'add'),
        (lambda s: s.remove(s.get_by_id(1)), 'remove'),
        (lambda s: s.remove_at(1), 'remove'),
        (lambda s: s.update({'id': 1, 'age': 1}), 'recordupdate'),
        (lambda s: s.update(s.get_by_id(2), {'age': 1}), 'recordupdate'),
        (lambda s: s.update_at(0, {'age': 2}), 'recordupdate'),
        (lambda s: s.clear(), 'clear'),
        (lambda s: s.load_data([]), 'load'),
        (lambda s: s.set_data([{'id': 5}]), 'load'),
    ])
    def test_pairing(self, mutate, semantic):
        store = make_store()
        rec = Recorder(store)
        mutate(store)
        assert rec.names == [semantic, 'update']

    def test_missing_targets_publish_nothing(self):
        """Test not-found operations never raise nor publish."""
        store = make_store()
        rec = Recorder(store)
        store.remove({'id': 1})
        store.remove_at(10)
        store.update({'id': 42, 'age': 1})
        assert store.get_by_id(42) is None
        assert rec.events == []


class TestQueries:
    """Tests for view-derived queries."""

    def test_get_at_and_index_of_follow_view(self):
        store = make_store()
        store.sort({'property': 'age'})
        jane = store.get_by_id(2)
        assert store.get_at(0) is jane
        assert store.index_of(jane) == 0
        assert store.get_at(5) is None
        assert store.get_at(-1) is None
        assert store.index_of({'id': 2}) == -1

    def test_get_by_id_scans_raw_collection(self):
        """Test get_by_id ignores filters."""
        store = make_store()
        store.filter({'property': 'age', 'value': 30})
        assert store.get_by_id(2)['name'] == 'Jane'
        assert store.get_count() == 1

    def test_get_by_id_keeps_booleans_apart(self):
        """Test True does not find id 1 and False does not find id 0."""
        store = DataStore([{'id': 0}, {'id': 1}, {'id': True}])
        assert store.get_by_id(1) == {'id': 1}
        assert store.get_by_id(True) is store.get_data()[2]
        assert DataStore([{'id': 1}]).get_by_id(True) is None
        assert DataStore([{'id': 0}]).get_by_id(False) is None

    def test_get_filtered_data_alias(self):
        store = make_store(filters={'property': 'name', 'value': 'Jane'})
        assert store.get_filtered_data() == store.get_records()


class TestFiltering:
    """Tests for DataStore.filter."""

    def test_scenario_filter_gte(self):
        store = make_store()
        store.filter({'property': 'age', 'operator': 'gte', 'value': 28})
        assert [r['name'] for r in store.get_records()] == ['John']

    def test_filter_replaces_same_property(self):
        store = make_store()
        store.filter({'property': 'age', 'operator': 'gt', 'value': 100})
        store.filter({'property': 'name', 'operator': 'like', 'value': 'j'})
        store.filter({'property': 'age', 'operator': 'lt', 'value': 28})
        assert store.filters == [Filter('age', 'lt', 28), Filter('name', 'like', 'j')]
        assert [r['name'] for r in store.get_records()] == ['Jane']

    def test_filter_replace(self):
        store = make_store()
        store.filter([{'property': 'age', 'value': 30}, {'property': 'name', 'value': 'John'}])
        store.filter({'property': 'id', 'operator': 'in', 'value': [2]}, replace=True)
        assert store.filters == [Filter('id', 'in', [2])]

    def test_filter_publishes(self):
        store = make_store()
        rec = Recorder(store)
        store.filter({'property': 'age', 'value': 30})
        store.clear_filters()
        assert rec.names == ['filter', 'filter']
        assert rec.events[0][1] == {'filters': [Filter('age', 'eq', 30)]}
        assert rec.events[1][1] == {'filters': []}
        assert store.get_count() == 2

    def test_invalid_filter_raises_before_change(self):
        store = make_store()
        with pytest.raises(InvalidFilterError):
            store.filter({'property': 'age', 'operator': 'approx', 'value': 1})
        assert store.filters == []

    def test_filter_does_not_touch_raw_data(self):
        store = make_store()
        store.filter({'property': 'age', 'value': 0})
        assert len(store.get_data()) == 2


class TestSorting:
    """Tests for DataStore.sort."""

    def test_scenario_sort_asc(self):
        store = make_store()
        store.sort({'property': 'age', 'direction': 'ASC'})
        assert [r['name'] for r in store.get_records()] == ['Jane', 'John']

    def test_sort_never_reorders_raw_data(self):
        store = make_store()
        store.sort({'property': 'age'})
        assert [r['id'] for r in store.get_data()] == [1, 2]

    def test_sort_replaces_sorters(self):
        store = make_store()
        store.sort([{'property': 'age'}, {'property': 'name'}])
        store.sort({'property': 'name', 'direction': 'DESC'})
        assert store.sorters == [Sorter('name', 'DESC')]
        assert [r['name'] for r in store.get_records()] == ['John', 'Jane']

    def test_sort_publishes(self):
        store = make_store()
        rec = Recorder(store)
        store.sort({'property': 'age'})
        store.clear_sorters()
        assert rec.events == [
            ('sort', {'sorters': [Sorter('age', 'ASC')]}),
            ('sort', {'sorters': []}),
        ]

    def test_filter_then_sort(self):
        store = make_store()
        store.add({'id': 3, 'name': 'Jim', 'age': 28})
        store.filter({'property': 'name', 'operator': 'like', 'value': 'j'})
        store.filter({'property': 'age', 'operator': 'gt', 'value': 26})
        store.sort({'property': 'age', 'direction': 'DESC'})
        assert [r['id'] for r in store.get_records()] == [1, 3]


class TestListenerFailure:
    """Tests for listener failures during store mutations."""

    def test_failing_update_listener(self):
        store = make_store()
        errors = []

        def broken(payload):
            raise RuntimeError('render failed')

        store.subscribe('update', broken)
        store.subscribe('error', errors.append)
        record = {'id': 3}
        store.add(record)

        assert store.get_by_id(3) is record
        assert len(errors) == 1
        assert errors[0]['original_event'] == 'update'

    def test_reentrant_listener(self):
        """Test a listener may mutate the store it listens to."""
        store = make_store()

        def tag_new(payload):
            record = payload['record']
            if 'tagged' not in record:
                store.update(record, {'tagged': True})

        store.subscribe('add', tag_new)
        store.add({'id': 3})
        assert store.get_by_id(3)['tagged'] is True


class TestLoad:
    """Tests for asynchronous loading through a proxy."""

    @pytest.mark.asyncio
    async def test_load_from_proxy(self):
        proxy = MemoryProxy([{'id': 7}, {'id': 8}])
        store = DataStore(proxy=proxy)
        rec = Recorder(store)
        data = await store.load()
        assert data == [{'id': 7}, {'id': 8}]
        assert store.get_data() is data
        assert rec.names == ['beforeload', 'load', 'update']
        assert rec.events[1][1] == {'data': data}
        assert store.is_loading is False

    @pytest.mark.asyncio
    async def test_load_with_sync_proxy(self):
        store = DataStore(proxy=CallableProxy(lambda: [{'id': 1}]))
        assert await store.load() == [{'id': 1}]

    @pytest.mark.asyncio
    async def test_is_loading_during_read(self):
        seen = []

        async def reader():
            seen.append(store.is_loading)
            return []

        store = DataStore(proxy=CallableProxy(reader))
        await store.load()
        assert seen == [True]
        assert store.is_loading is False

    @pytest.mark.asyncio
    async def test_load_failure(self):
        async def reader():
            raise ConnectionError('offline')

        store = make_store(proxy=CallableProxy(reader))
        rec = Recorder(store)
        with pytest.raises(ConnectionError, match='offline'):
            await store.load()

        assert rec.names == ['beforeload', 'exception']
        assert isinstance(rec.events[1][1]['error'], ConnectionError)
        assert store.is_loading is False
        assert store.get_count() == 2

    @pytest.mark.asyncio
    async def test_load_without_proxy(self):
        store = make_store()
        rec = Recorder(store)
        assert await store.load() == []
        assert rec.events == []
        assert store.get_count() == 2

    @pytest.mark.asyncio
    async def test_concurrent_loads_last_resolution_wins(self):
        """Test the slower load overwrites the faster one."""
        async def slow():
            await asyncio.sleep(0.02)
            return [{'id': 'slow'}]

        async def fast():
            return [{'id': 'fast'}]

        store = DataStore(proxy=CallableProxy(slow))
        first = asyncio.ensure_future(store.load())
        await asyncio.sleep(0)
        store.proxy = CallableProxy(fast)
        await store.load()
        await first
        assert store.get_data() == [{'id': 'slow'}]

    @pytest.mark.asyncio
    async def test_is_loading_until_every_load_settles(self):
        """Test an earlier load finishing does not clear is_loading."""
        release = asyncio.Event()

        async def slow():
            await release.wait()
            return [{'id': 'slow'}]

        async def fast():
            return [{'id': 'fast'}]

        store = DataStore(proxy=CallableProxy(slow))
        first = asyncio.ensure_future(store.load())
        await asyncio.sleep(0)
        store.proxy = CallableProxy(fast)
        await store.load()
        assert store.is_loading is True
        release.set()
        await first
        assert store.is_loading is False

    @pytest.mark.asyncio
    async def test_is_loading_cleared_after_failure_and_cancel(self):
        async def failing():
            raise ConnectionError('offline')

        async def hanging():
            await asyncio.Event().wait()

        store = DataStore(proxy=CallableProxy(hanging))
        pending = asyncio.ensure_future(store.load())
        await asyncio.sleep(0)
        assert store.is_loading is True
        store.proxy = CallableProxy(failing)
        with pytest.raises(ConnectionError):
            await store.load()
        assert store.is_loading is True
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending
        assert store.is_loading is False

    @pytest.mark.asyncio
    async def test_auto_load(self):
        store = DataStore(proxy=MemoryProxy([{'id': 1}]), auto_load=True)
        assert store.load_task is not None
        await store.load_task
        assert store.get_by_id(1) == {'id': 1}

    def test_auto_load_without_loop(self, caplog):
        store = DataStore(proxy=MemoryProxy([{'id': 1}]), auto_load=True)
        assert store.load_task is None
        assert 'no event loop is running' in caplog.text
