# Overview: Scanner-side staging, local stores and the upload client.

import json
import logging
from datetime import datetime

import httpx
import pytest

from zonecount.scanner import (
    ApiClient,
    ApiError,
    KIND_SERIAL,
    DuplicateScanError,
    JsonFileStore,
    MemoryStore,
    OfflineError,
    ScanStager,
    staging_key,
)


class TestStores:

    def test_memory_store_copies_values(self):
        store = MemoryStore()
        value = [{"code": "111"}]
        store.set("k", value)
        value.append({"code": "222"})

        assert store.get("k") == [{"code": "111"}]
        assert store.get("missing") is None

    def test_json_file_store_survives_reload(self, tmp_path):
        path = tmp_path / "staged.json"
        JsonFileStore(path).set("stagedScans_1_1", [{"code": "111", "scanned_at": "2026-10-19T08:00:00Z"}])

        reloaded = JsonFileStore(path)

        assert reloaded.get("stagedScans_1_1") == [{"code": "111", "scanned_at": "2026-10-19T08:00:00Z"}]
        assert json.loads(path.read_text(encoding="utf-8")).keys() == {"stagedScans_1_1"}

    def test_json_file_store_clear_keeps_other_keys(self, tmp_path):
        store = JsonFileStore(tmp_path / "staged.json")
        store.set("a", [1])
        store.set("b", [2])

        store.clear("a")

        assert store.keys() == ["b"]
        assert list(tmp_path.glob(".staged-*")) == []

    def test_json_file_store_missing_file(self, tmp_path):
        store = JsonFileStore(tmp_path / "nested" / "staged.json")
        assert store.get("anything") is None
        store.clear("anything")


class TestScanStager:

    @pytest.fixture
    def alerts(self):
        return []

    @pytest.fixture
    def stager(self, alerts):
        stager = ScanStager(MemoryStore(), alert=lambda: alerts.append("beep"))
        stager.select(zone_id=7, count_number=1)
        return stager

    def test_key_format(self, stager):
        assert stager.key == staging_key(7, 1) == "stagedScans_7_1"

    def test_newest_first(self, stager):
        stager.add("111", scanned_at=datetime(2026, 10, 19, 8, 0, 0))
        stager.add("222", scanned_at=datetime(2026, 10, 19, 8, 0, 5))

        assert [e.code for e in stager.entries] == ["222", "111"]
        assert stager.entries[1].scanned_at == "2026-10-19T08:00:00Z"

    def test_duplicate_rejected_with_alert(self, stager, alerts):
        stager.add("111")

        with pytest.raises(DuplicateScanError) as exc:
            stager.add(" 111 ")

        assert exc.value.code == "111"
        assert alerts == ["beep"]
        assert len(stager) == 1

    def test_same_code_allowed_in_another_list(self, stager):
        stager.add("111")
        stager.select(zone_id=7, count_number=2)
        stager.add("111")
        assert len(stager) == 1

    def test_switching_does_not_merge_lists(self, stager):
        stager.add("111")
        stager.select(zone_id=8, count_number=1)
        stager.add("222")

        assert [e.code for e in stager.select(zone_id=7, count_number=1)] == ["111"]
        assert [e.code for e in stager.select(zone_id=8, count_number=1)] == ["222"]

    def test_serial_list_kept_apart_from_ean_list(self, stager):
        stager.add("4006381333931")
        stager.add("4006381333948")

        serials = ScanStager(stager.store, kind=KIND_SERIAL)
        loaded = serials.select(zone_id=7, count_number=1)
        serials.add("SN-1")

        assert loaded == []
        assert serials.key == "stagedSerials_7_1"
        assert [e["code"] for e in serials.as_batch()] == ["SN-1"]
        assert [e.code for e in stager.select(zone_id=7, count_number=1)] == ["4006381333948", "4006381333931"]

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            ScanStager(MemoryStore(), kind="rfid")
        with pytest.raises(ValueError):
            staging_key(1, 1, kind="rfid")

    def test_list_persists_in_store(self, stager):
        stager.add("111")

        fresh = ScanStager(stager.store)
        fresh.select(zone_id=7, count_number=1)

        assert [e.code for e in fresh.entries] == ["111"]

    @pytest.mark.parametrize("count_number", [0, 4, "1", True])
    def test_invalid_count_number(self, count_number):
        with pytest.raises(ValueError):
            ScanStager(MemoryStore()).select(zone_id=1, count_number=count_number)

    def test_add_requires_selection(self):
        with pytest.raises(ValueError, match="Select a zone and count first"):
            ScanStager(MemoryStore()).add("111")

    def test_blank_code_rejected(self, stager):
        with pytest.raises(ValueError):
            stager.add("  ")

    def test_remove_by_index_and_code(self, stager):
        for code in ("111", "222", "333"):
            stager.add(code)

        assert stager.remove(index=0).code == "333"
        assert stager.remove(code="111").code == "111"
        assert [e.code for e in stager.entries] == ["222"]

    def test_remove_missing(self, stager):
        with pytest.raises(IndexError):
            stager.remove(index=3)
        with pytest.raises(KeyError):
            stager.remove(code="nope")

    def test_clear(self, stager):
        stager.add("111")
        stager.clear()
        assert len(stager) == 0
        assert stager.store.get(stager.key) is None

    def test_as_batch(self, stager):
        stager.add("111", scanned_at=datetime(2026, 10, 19, 8, 0, 0))
        assert stager.as_batch() == [
            {"code": "111", "zone_id": 7, "count_number": 1, "scanned_at": "2026-10-19T08:00:00Z"},
        ]


class TestSubmit:

    @pytest.fixture
    def stager(self):
        stager = ScanStager(MemoryStore())
        stager.select(zone_id=3, count_number=2)
        stager.add("111")
        stager.add("222")
        return stager

    def test_success_clears_list(self, stager):
        sent = []

        result = stager.submit(sent.append)

        assert result.uploaded == 2
        assert result.deferred is False
        assert [e["code"] for e in sent[0]] == ["222", "111"]
        assert len(stager) == 0

    def test_offline_defers_and_keeps_list(self, stager, caplog):
        def uploader(batch):
            raise OfflineError("connection refused")

        with caplog.at_level(logging.WARNING, logger="zonecount.scanner.stager"):
            result = stager.submit(uploader)

        assert result.deferred is True
        assert result.uploaded == 0
        assert len(stager) == 2
        assert "upload deferred for stagedScans_3_2" in caplog.text

    def test_server_error_propagates_and_keeps_list(self, stager):
        def uploader(batch):
            raise ApiError(400, "Invalid batch data (1 invalid entries)")

        with pytest.raises(ApiError):
            stager.submit(uploader)
        assert len(stager) == 2

    def test_empty_list(self):
        stager = ScanStager(MemoryStore())
        stager.select(zone_id=3, count_number=1)
        with pytest.raises(ValueError, match="No scans to upload"):
            stager.submit(lambda batch: None)


class TestApiClient:

    def _client(self, handler):
        return ApiClient("http://scanner.test/", transport=httpx.MockTransport(handler))

    def test_login_stores_token(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"token": "abc", "user": {"id": 1}, "company_id": 5})

        with self._client(handler) as client:
            client.login("a@acme.test", "Password123!", company_id=5)
            assert client.token == "abc"
            assert client.company_id == 5
            assert client._headers()["Authorization"] == "Bearer abc"

        assert seen["body"] == {"email": "a@acme.test", "password": "Password123!", "company_id": 5}

    def test_connection_error_is_offline(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with self._client(handler) as client:
            with pytest.raises(OfflineError):
                client.submit_batch([{"code": "111"}])

    def test_error_status_is_api_error(self):
        def handler(request):
            return httpx.Response(400, json={
                "error": "Invalid batch data (1 invalid entries)",
                "errors": ["Entry 0: count_number must be between 1 and 3"],
            })

        with self._client(handler) as client:
            with pytest.raises(ApiError) as exc:
                client.submit_batch([{"code": "111"}])

        assert exc.value.status_code == 400
        assert exc.value.errors == ["Entry 0: count_number must be between 1 and 3"]

    def test_lookup_miss_is_none(self):
        def handler(request):
            assert request.url.params["code"] == "999"
            return httpx.Response(404, json={"error": "Product not found"})

        with self._client(handler) as client:
            assert client.lookup_product("999") is None

    def test_stager_defers_when_server_unreachable(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        stager = ScanStager(MemoryStore())
        stager.select(zone_id=1, count_number=1)
        stager.add("111")

        with self._client(handler) as client:
            result = stager.submit(client.submit_batch)

        assert result.deferred is True
        assert len(stager) == 1
