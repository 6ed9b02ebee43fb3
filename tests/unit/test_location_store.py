"""
Unit tests for the Elasticsearch-backed location store.

Uses the in-memory client from conftest, so the tests exercise the real
query bodies the store sends.
"""

import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from elasticsearch import ConnectionError as ESConnectionError

from errors.codes import ErrorCode
from errors.exceptions import AppException
from services.location_store import (
    PAGE_SIZE,
    LocationRecord,
    LocationStore,
    get_location_store,
    reset_location_store,
)


def _record(timestamp: str, device_id: str = "device-123", **extra) -> LocationRecord:
    payload = {
        "timestamp": timestamp,
        "latitude": 37.7749,
        "longitude": -122.4194,
        "accuracy": 5.0,
        "altitude": 12.0,
        "speed": 0.0,
        **extra,
    }
    return LocationRecord.from_payload(device_id, payload)


class TestLocationRecord:
    """Tests for the LocationRecord model."""

    def test_document_uses_stored_field_names(self, sample_location):
        record = LocationRecord.from_payload("device-123", sample_location)
        document = record.to_document()

        assert document["userId"] == "device-123"
        assert document["timestamp"] == "2025-10-26T15:00:00Z"
        assert document["locationId"] == record.location_id
        assert document["countryCode"] == "US"
        assert document["receivedAt"].endswith("Z")
        assert set(document) >= {"latitude", "longitude", "accuracy", "altitude", "speed"}

    def test_document_id_combines_device_and_timestamp(self):
        record = _record("2025-10-26T15:00:00Z")
        assert record.document_id == "device-123#2025-10-26T15:00:00Z"

    def test_empty_geocoding_fields_are_omitted(self):
        record = _record("2025-10-26T15:00:00Z", city="", state="  ", country="United States")
        document = record.to_document()

        assert "city" not in document
        assert "state" not in document
        assert "countryCode" not in document
        assert document["country"] == "United States"

    def test_non_string_geocoding_values_are_dropped(self):
        record = _record("2025-10-26T15:00:00Z", city=["x"], state=42, country="United States")
        document = record.to_document()

        assert "city" not in document
        assert "state" not in document
        assert document["country"] == "United States"

    def test_numbers_are_stored_as_floats(self):
        record = LocationRecord.from_payload("device-123", {
            "timestamp": "2025-10-26T15:00:00Z",
            "latitude": 37,
            "longitude": -122,
            "accuracy": 5,
            "altitude": 0,
            "speed": -1,
        })
        document = record.to_document()

        assert document["latitude"] == 37.0
        assert isinstance(document["latitude"], float)
        assert isinstance(document["speed"], float)

    def test_each_record_gets_a_fresh_location_id(self):
        first = _record("2025-10-26T15:00:00Z")
        second = _record("2025-10-26T15:00:00Z")
        assert first.location_id != second.location_id


class TestPutIfAbsent:
    """Tests for create-only writes."""

    @pytest.mark.asyncio
    async def test_first_write_returns_candidate_id(self, store, fake_es):
        record = _record("2025-10-26T15:00:00Z")

        location_id = await store.put_if_absent(record)

        assert location_id == record.location_id
        stored = fake_es.docs["locations-test"]["device-123#2025-10-26T15:00:00Z"]
        assert stored["locationId"] == record.location_id

    @pytest.mark.asyncio
    async def test_duplicate_returns_stored_id(self, store, fake_es):
        first = _record("2025-10-26T15:00:00Z")
        duplicate = _record("2025-10-26T15:00:00Z", latitude=10.0)

        first_id = await store.put_if_absent(first)
        second_id = await store.put_if_absent(duplicate)

        assert second_id == first_id
        assert duplicate.location_id != first_id
        assert len(fake_es.docs["locations-test"]) == 1
        # The original record is kept
        assert fake_es.docs["locations-test"][first.document_id]["latitude"] == 37.7749

    @pytest.mark.asyncio
    async def test_distinct_timestamps_create_distinct_records(self, store, fake_es):
        ids = {
            await store.put_if_absent(_record("2025-10-26T15:00:00Z")),
            await store.put_if_absent(_record("2025-10-26T15:00:01Z")),
        }

        assert len(ids) == 2
        assert len(fake_es.docs["locations-test"]) == 2

    @pytest.mark.asyncio
    async def test_same_timestamp_for_different_devices(self, store, fake_es):
        await store.put_if_absent(_record("2025-10-26T15:00:00Z", device_id="a"))
        await store.put_if_absent(_record("2025-10-26T15:00:00Z", device_id="b"))

        assert len(fake_es.docs["locations-test"]) == 2

    @pytest.mark.asyncio
    async def test_store_failure_raises_store_unavailable(self, store, fake_es):
        fake_es.fail_with = ESConnectionError("Connection refused")

        with pytest.raises(AppException) as exc_info:
            await store.put_if_absent(_record("2025-10-26T15:00:00Z"))

        assert exc_info.value.error_code == ErrorCode.STORE_UNAVAILABLE
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Failed to save location"
        assert "Connection refused" not in repr(exc_info.value)


class TestQueryRange:
    """Tests for windowed reads."""

    @pytest.mark.asyncio
    async def test_returns_records_in_window_newest_first(self, store):
        now = datetime(2025, 10, 26, 12, 0, tzinfo=timezone.utc)
        for days_ago in (1, 2, 3, 4):
            ts = now - timedelta(days=days_ago)
            await store.put_if_absent(_record(ts.isoformat().replace("+00:00", "Z")))

        results = await store.query_range("device-123", now - timedelta(days=3), now)

        assert [r["timestamp"] for r in results] == [
            "2025-10-25T12:00:00Z",
            "2025-10-24T12:00:00Z",
            "2025-10-23T12:00:00Z",
        ]

    @pytest.mark.asyncio
    async def test_bounds_are_inclusive(self, store):
        await store.put_if_absent(_record("2025-10-26T00:00:00Z"))
        await store.put_if_absent(_record("2025-10-27T00:00:00Z"))

        results = await store.query_range(
            "device-123",
            datetime(2025, 10, 26, tzinfo=timezone.utc),
            datetime(2025, 10, 27, tzinfo=timezone.utc),
        )

        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_only_returns_the_requested_device(self, store):
        await store.put_if_absent(_record("2025-10-26T10:00:00Z", device_id="device-123"))
        await store.put_if_absent(_record("2025-10-26T11:00:00Z", device_id="someone-else"))

        results = await store.query_range(
            "device-123",
            datetime(2025, 10, 26, tzinfo=timezone.utc),
            datetime(2025, 10, 27, tzinfo=timezone.utc),
        )

        assert [r["userId"] for r in results] == ["device-123"]

    @pytest.mark.asyncio
    async def test_empty_window(self, store):
        results = await store.query_range(
            "device-123",
            datetime(2025, 10, 26, tzinfo=timezone.utc),
            datetime(2025, 10, 27, tzinfo=timezone.utc),
        )
        assert results == []

    @pytest.mark.asyncio
    async def test_pages_through_large_windows(self, store, fake_es):
        start = datetime(2025, 10, 1, tzinfo=timezone.utc)
        total = PAGE_SIZE + 7
        for i in range(total):
            ts = (start + timedelta(minutes=i)).isoformat().replace("+00:00", "Z")
            await store.put_if_absent(_record(ts))

        results = await store.query_range("device-123", start, start + timedelta(days=1))

        assert len(results) == total
        assert fake_es.search_calls == 2
        timestamps = [r["timestamp"] for r in results]
        assert timestamps == sorted(timestamps, reverse=True)

    @pytest.mark.asyncio
    async def test_read_failure_raises_store_unavailable(self, store, fake_es):
        fake_es.fail_with = ESConnectionError("Connection refused")

        with pytest.raises(AppException) as exc_info:
            await store.query_range(
                "device-123",
                datetime(2025, 10, 26, tzinfo=timezone.utc),
                datetime(2025, 10, 27, tzinfo=timezone.utc),
            )

        assert exc_info.value.message == "Failed to read locations"


class TestLookupsAndIndex:
    """Tests for find_by_location_id, ping and ensure_index."""

    @pytest.mark.asyncio
    async def test_find_by_location_id(self, store):
        record = _record("2025-10-26T15:00:00Z")
        await store.put_if_absent(record)

        found = await store.find_by_location_id(record.location_id)
        missing = await store.find_by_location_id("no-such-id")

        assert found["timestamp"] == "2025-10-26T15:00:00Z"
        assert missing is None

    @pytest.mark.asyncio
    async def test_ping_reflects_cluster_availability(self, store, fake_es):
        assert await store.ping() is True

        fake_es.available = False
        assert await store.ping() is False

    @pytest.mark.asyncio
    async def test_ensure_index_creates_mapping_once(self, store, fake_es):
        await store.ensure_index()
        await store.ensure_index()

        mapping = fake_es.mappings["locations-test"]
        assert mapping["properties"]["timestamp"]["type"] == "date"
        assert mapping["properties"]["userId"]["type"] == "keyword"

    def test_client_is_created_lazily_once(self, settings, monkeypatch):
        created = []

        def fake_elasticsearch(*args, **kwargs):
            created.append((args, kwargs))
            return MagicMock()

        monkeypatch.setattr("services.location_store.Elasticsearch", fake_elasticsearch)
        store = LocationStore(settings)

        assert created == []
        first = store.client
        second = store.client

        assert first is second
        assert len(created) == 1
        assert created[0][0] == (settings.elastic_endpoint,)


    def test_concurrent_first_use_connects_once(self, settings, monkeypatch):
        created = []

        def slow_elasticsearch(*args, **kwargs):
            created.append(args)
            time.sleep(0.05)
            return MagicMock()

        monkeypatch.setattr("services.location_store.Elasticsearch", slow_elasticsearch)
        store = LocationStore(settings)

        clients = _call_concurrently(lambda: store.client)

        assert len(created) == 1
        assert all(client is clients[0] for client in clients)


class TestGetLocationStore:
    """Tests for the process-wide store accessor."""

    def test_returns_the_same_instance(self, settings):
        reset_location_store()
        try:
            first = get_location_store(settings)
            second = get_location_store()
            assert first is second
            assert first.index == "locations-test"
        finally:
            reset_location_store()

    def test_concurrent_first_use_creates_one_store(self, settings, monkeypatch):
        created = []

        def slow_store(*args, **kwargs):
            created.append(args)
            time.sleep(0.05)
            return MagicMock()

        monkeypatch.setattr("services.location_store.LocationStore", slow_store)
        reset_location_store()
        try:
            results = _call_concurrently(lambda: get_location_store(settings))
        finally:
            reset_location_store()

        assert len(created) == 1
        assert all(result is results[0] for result in results)


def _call_concurrently(fn, workers: int = 8):
    """Start every worker at once on fn and return what each one got back."""
    barrier = threading.Barrier(workers)
    results = [None] * workers

    def run(slot):
        barrier.wait()
        results[slot] = fn()

    threads = [threading.Thread(target=run, args=(i,)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)
    return results
