from __future__ import annotations

from almacen.services.key_batch_resolver import KeyBatchResolver, extract_keys, lookup_label
from almacen.services.paged_fetcher import PagedFetcher
from tests.test_utils import FakeStore


CATEGORIES = [{"code": f"C{i:03d}", "name": f"Category {i}"} for i in range(250)]


def _resolver(store: FakeStore, **kwargs) -> KeyBatchResolver:
    return KeyBatchResolver(
        store,
        collection="expense_categories",
        key_field="code",
        select=("code", "name"),
        fetcher=PagedFetcher(store, page_size=1000),
        **kwargs,
    )


class TestKeyBatchResolver:
    def test_no_keys_issues_no_requests(self):
        store = FakeStore({"expense_categories": CATEGORIES})

        assert _resolver(store).resolve([]) == {}
        assert _resolver(store).resolve([None, ""]) == {}
        assert store.requests == []

    def test_keys_are_split_into_batches_and_merged(self):
        store = FakeStore({"expense_categories": CATEGORIES})
        keys = [row["code"] for row in CATEGORIES[:150]]

        resolved = _resolver(store, batch_size=100).resolve(keys + keys[:10])

        assert len(store.requests) == 2
        batch_sizes = [len(query.filters[0].value) for query, _, _ in store.requests]
        assert batch_sizes == [100, 50]
        assert set(resolved) == set(keys)
        assert resolved["C007"].label("name") == "Category 7"

    def test_failing_batch_leaves_its_keys_unresolved(self):
        store = FakeStore({"expense_categories": CATEGORIES}, fail_on={"expense_categories": 1})
        keys = [row["code"] for row in CATEGORIES[:150]]

        resolved = _resolver(store, batch_size=100).resolve(keys)

        assert set(resolved) == set(keys[:100])
        assert lookup_label(resolved, "C120", "name") == "N/A"

    def test_concurrent_batches_give_the_same_result(self):
        keys = [row["code"] for row in CATEGORIES]
        sequential_store = FakeStore({"expense_categories": CATEGORIES})
        concurrent_store = FakeStore({"expense_categories": CATEGORIES})

        sequential = _resolver(sequential_store, batch_size=40).resolve(keys)
        concurrent = _resolver(concurrent_store, batch_size=40, max_workers=4).resolve(keys)

        assert len(concurrent_store.requests) == 7
        assert {k: v.fields for k, v in concurrent.items()} == {
            k: v.fields for k, v in sequential.items()
        }

    def test_key_field_is_always_selected(self):
        store = FakeStore({"expense_categories": CATEGORIES})
        resolver = KeyBatchResolver(store, "expense_categories", "code", select=("name",))

        assert resolver.select == ("code", "name")


def test_extract_keys_skips_empty_values():
    rows = [{"code": "A"}, {"code": None}, {"code": ""}, {"code": "A"}, {"other": 1}]
    assert extract_keys(rows, "code") == {"A"}


def test_lookup_label_falls_back():
    assert lookup_label({}, "X", "name") == "N/A"
    assert lookup_label({}, None, "name", "unidentified") == "unidentified"
