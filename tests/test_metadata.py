from datetime import datetime, timezone

import httpx
import pytest

from anondrop.errors import DependencyUnavailable, MalformedRecordError
from anondrop.metadata import CloudflareKVStore, InMemoryMetadataStore, MetadataStore
from anondrop.models import ObjectRecord
from anondrop.repository import RecordRepository

NAMESPACE_PATH = "/client/v4/accounts/acct/storage/kv/namespaces/ns"


class FakeKV:
    """Minimal Workers KV REST API backed by a dict."""

    def __init__(self, page_size: int = 1000):
        self.values: dict[str, str] = {}
        self.page_size = page_size
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        assert request.headers["Authorization"] == "Bearer token"
        path = request.url.path
        assert path.startswith(NAMESPACE_PATH)
        path = path[len(NAMESPACE_PATH):]

        if path == "/keys" and request.method == "GET":
            names = sorted(self.values)
            start = int(request.url.params.get("cursor") or 0)
            page = names[start:start + self.page_size]
            cursor = str(start + self.page_size) if start + self.page_size < len(names) else ""
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "result": [{"name": name} for name in page],
                    "result_info": {"count": len(page), "cursor": cursor},
                },
            )

        key = path.removeprefix("/values/")
        if request.method == "GET":
            if key not in self.values:
                return httpx.Response(404, json={"success": False})
            return httpx.Response(200, text=self.values[key])
        if request.method == "PUT":
            self.values[key] = request.content.decode("utf-8")
            return httpx.Response(200, json={"success": True})
        if request.method == "DELETE":
            if key not in self.values:
                return httpx.Response(404, json={"success": False})
            del self.values[key]
            return httpx.Response(200, json={"success": True})
        return httpx.Response(405)


def build_store(handler, **overrides) -> CloudflareKVStore:
    kwargs = {
        "account_id": "acct",
        "api_token": "token",
        "namespace_id": "ns",
        "base_url": "https://kv.test/client/v4",
        "timeout": 2.0,
        "transport": httpx.MockTransport(handler),
    }
    kwargs.update(overrides)
    return CloudflareKVStore(**kwargs)


def sample_record(**overrides) -> ObjectRecord:
    fields = {
        "id": "3f0c6a5e-1b7c-4f55-9a56-0d3e2c1b9a77",
        "display_name": "report final (v2).pdf",
        "content_type": "application/pdf",
        "size_bytes": 123456,
        "created_at": datetime(2026, 10, 18, 9, 30, 15, 123456, tzinfo=timezone.utc),
        "download_count": 2,
        "storage_key": "uploads/3f0c6a5e-1b7c-4f55-9a56-0d3e2c1b9a77/report final (v2).pdf",
    }
    fields.update(overrides)
    return ObjectRecord(**fields)


def test_adapters_satisfy_protocol():
    assert isinstance(InMemoryMetadataStore(), MetadataStore)
    assert isinstance(build_store(FakeKV().handler), MetadataStore)


def test_kv_put_get_delete():
    kv = FakeKV()
    store = build_store(kv.handler)

    assert store.put("abc", '{"a": 1}') is True
    assert store.get("abc") == '{"a": 1}'
    assert store.delete("abc") is True
    assert store.get("abc") is None


def test_kv_delete_is_idempotent():
    store = build_store(FakeKV().handler)
    assert store.delete("never-existed") is True
    assert store.delete("never-existed") is True


def test_kv_keys_are_quoted_in_path():
    kv = FakeKV()
    store = build_store(kv.handler)
    store.put("a/b c", "v")
    assert kv.requests[-1].url.raw_path.decode().endswith("/values/a%2Fb%20c")


def test_kv_list_keys_follows_cursor():
    kv = FakeKV(page_size=2)
    kv.values = {f"k{i}": "v" for i in range(5)}
    store = build_store(kv.handler)

    assert sorted(store.list_keys()) == ["k0", "k1", "k2", "k3", "k4"]
    assert len([r for r in kv.requests if r.url.path.endswith("/keys")]) == 3


def test_kv_get_raises_on_server_error():
    store = build_store(lambda request: httpx.Response(502))
    with pytest.raises(DependencyUnavailable):
        store.get("abc")


def test_kv_list_raises_on_transport_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    store = build_store(handler)
    with pytest.raises(DependencyUnavailable):
        store.list_keys()


def test_kv_write_failures_return_false():
    def handler(request):
        if request.method == "PUT":
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(500)

    store = build_store(handler)
    assert store.put("abc", "v") is False
    assert store.delete("abc") is False


def test_unconfigured_kv_degrades_to_no_ops():
    def handler(request):
        raise AssertionError("no request expected")

    store = build_store(handler, api_token="", namespace_id="")

    assert store.configured is False
    assert store.get("abc") is None
    assert store.put("abc", "v") is False
    assert store.delete("abc") is False
    assert store.list_keys() == []


def test_in_memory_store():
    store = InMemoryMetadataStore({"a": "1"})
    assert store.get("a") == "1"
    assert store.put("b", "2") is True
    assert sorted(store.list_keys()) == ["a", "b"]
    assert store.delete("a") is True
    assert store.delete("a") is True
    assert store.list_keys() == ["b"]


@pytest.mark.parametrize("store_factory", [InMemoryMetadataStore, lambda: build_store(FakeKV().handler)])
def test_repository_round_trip(store_factory):
    repository = RecordRepository(store_factory())
    record = sample_record()

    assert repository.save(record) is True
    assert repository.get(record.id) == record
    assert repository.list_ids() == [record.id]


def test_record_json_uses_camel_case_keys():
    raw = sample_record().to_json()
    for key in ("displayName", "contentType", "sizeBytes", "createdAt", "downloadCount", "storageKey"):
        assert f'"{key}"' in raw


def test_repository_get_missing_record():
    assert RecordRepository(InMemoryMetadataStore()).get("nope") is None


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        '{"id": "x", "displayName": "a.txt"}',
        '{"id": "x", "displayName": "a", "contentType": "t", "sizeBytes": 1, '
        '"createdAt": "2026-10-18T09:30:15+00:00", "downloadCount": 0, "storageKey": ""}',
    ],
)
def test_repository_flags_malformed_values(raw):
    repository = RecordRepository(InMemoryMetadataStore({"x": raw}))
    with pytest.raises(MalformedRecordError):
        repository.get("x")


def test_repository_rejects_record_stored_under_another_id():
    record = sample_record()
    repository = RecordRepository(InMemoryMetadataStore({"other": record.to_json()}))
    with pytest.raises(MalformedRecordError):
        repository.get("other")


@pytest.mark.parametrize(
    "payload",
    [
        {"result": [{"key": "x"}]},
        ["oops"],
        {"result": "x", "result_info": []},
        {"result": [], "result_info": "cursor"},
    ],
)
def test_kv_list_rejects_unexpected_payloads(payload):
    store = build_store(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(DependencyUnavailable):
        store.list_keys()
