import json

from spotdiff.services.engine.persistence import (
    MemoryStore,
    PersistenceAdapter,
    StorageError,
    differences_storage_key,
)


class FailingStore(MemoryStore):
    def get(self, key):
        raise StorageError('store unavailable')

    def set(self, key, value):
        raise StorageError('quota exceeded')


class CountingStore(MemoryStore):
    def __init__(self, initial=None):
        super().__init__(initial)
        self.reads = 0

    def get(self, key):
        self.reads += 1
        return super().get(key)


def test_missing_key_returns_fallback():
    adapter = PersistenceAdapter(MemoryStore())
    assert adapter.load('missing', [{'id': 1}]) == [{'id': 1}]


def test_load_caches_parsed_value():
    store = CountingStore({'cached': json.dumps({'value': 42})})
    adapter = PersistenceAdapter(store)
    assert adapter.load('cached') == {'value': 42}
    assert adapter.load('cached') == {'value': 42}
    assert store.reads == 1


def test_unchanged_payload_is_written_once():
    store = MemoryStore()
    adapter = PersistenceAdapter(store)
    assert adapter.save('diff-key', {'foo': 'bar'})
    assert not adapter.save('diff-key', {'foo': 'bar'})
    assert not adapter.save('diff-key', {'foo': 'bar'})
    assert store.writes == 1
    assert adapter.save('diff-key', {'foo': 'baz'})
    assert store.writes == 2


def test_save_after_load_of_same_value_is_skipped():
    store = MemoryStore({'k': json.dumps([1, 2])})
    adapter = PersistenceAdapter(store)
    adapter.load('k')
    assert not adapter.save('k', [1, 2])
    assert store.writes == 0


def test_corrupt_entry_falls_back():
    adapter = PersistenceAdapter(MemoryStore({'bad': '{not json'}))
    assert adapter.load('bad', []) == []


def test_store_failures_do_not_raise():
    adapter = PersistenceAdapter(FailingStore())
    assert adapter.load('anything', 'fallback') == 'fallback'
    assert adapter.save('anything', [1]) is False


def test_unserializable_value_is_skipped():
    store = MemoryStore()
    adapter = PersistenceAdapter(store)
    assert adapter.save('k', {'bad': object()}) is False
    assert store.writes == 0


def test_clear_removes_entry_and_cache():
    store = MemoryStore()
    adapter = PersistenceAdapter(store)
    adapter.save('clear-me', {'hello': 'world'})
    assert adapter.load('clear-me') == {'hello': 'world'}
    assert adapter.clear('clear-me')
    assert 'clear-me' not in store.data
    assert adapter.load('clear-me', []) == []


def test_reset_cache_rereads_store():
    store = CountingStore({'k': '1'})
    adapter = PersistenceAdapter(store)
    adapter.load('k')
    adapter.reset_cache()
    adapter.load('k')
    assert store.reads == 2


def test_storage_key():
    assert differences_storage_key('level-1') == 'differences-level-1'
    assert differences_storage_key(None) == 'differences'
