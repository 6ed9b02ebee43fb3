"""
Shared pytest fixtures and configuration for all tests.
"""
import copy
import os
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from elasticsearch import ConflictError, NotFoundError

# Hypothesis configuration for property-based testing
from hypothesis import settings as hypothesis_settings, Verbosity, Phase

from config.settings import Settings
from services.location_store import LocationStore
from validation.validator import parse_iso8601

# Default profile: balanced for local development
hypothesis_settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,
    print_blob=True,
)

# CI profile: more thorough, reproducible
hypothesis_settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

# Debug profile: minimal examples, no shrinking
hypothesis_settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],
)

hypothesis_settings.register_profile(
    "fast",
    max_examples=20,
    verbosity=Verbosity.normal,
    deadline=None,
)

hypothesis_settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


def make_api_error(error_cls, status: int, message: str):
    """Build an elasticsearch ApiError subclass without a live transport."""
    return error_cls(message, meta=MagicMock(status=status), body={"error": {"type": message}})


class FakeIndices:
    def __init__(self, es: "FakeElasticsearch"):
        self._es = es

    def exists(self, index: str) -> bool:
        self._es._check_failure()
        return index in self._es.mappings

    def create(self, index: str, mappings: Optional[Dict[str, Any]] = None, **kwargs):
        self._es._check_failure()
        self._es.mappings[index] = mappings or {}
        self._es.docs.setdefault(index, {})
        return {"acknowledged": True, "index": index}


class FakeElasticsearch:
    """
    In-memory stand-in for the elasticsearch.Elasticsearch client.

    Implements the calls LocationStore makes: create, get, search (bool
    filter of term/range clauses, timestamp/locationId sort, search_after),
    ping and indices.exists/create. Set fail_with to make every call raise.
    """

    def __init__(self):
        self.docs: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.mappings: Dict[str, Dict[str, Any]] = {}
        self.indices = FakeIndices(self)
        self.available = True
        self.fail_with: Optional[Exception] = None
        self.create_calls = 0
        self.search_calls = 0

    def _check_failure(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def create(self, index: str, id: str, document: Dict[str, Any], **kwargs):
        self._check_failure()
        self.create_calls += 1
        bucket = self.docs.setdefault(index, {})
        if id in bucket:
            raise make_api_error(ConflictError, 409, "version_conflict_engine_exception")
        bucket[id] = copy.deepcopy(document)
        return {"_id": id, "result": "created"}

    def get(self, index: str, id: str, **kwargs):
        self._check_failure()
        bucket = self.docs.get(index, {})
        if id not in bucket:
            raise make_api_error(NotFoundError, 404, "not_found")
        return {"_id": id, "found": True, "_source": copy.deepcopy(bucket[id])}

    @staticmethod
    def _matches(source: Dict[str, Any], clause: Dict[str, Any]) -> bool:
        if "bool" in clause:
            return all(FakeElasticsearch._matches(source, c) for c in clause["bool"].get("filter", []))
        if "term" in clause:
            field, value = next(iter(clause["term"].items()))
            return source.get(field) == value
        if "range" in clause:
            field, bounds = next(iter(clause["range"].items()))
            value = parse_iso8601(source[field])
            if "gte" in bounds and value < parse_iso8601(bounds["gte"]):
                return False
            if "lte" in bounds and value > parse_iso8601(bounds["lte"]):
                return False
            return True
        raise AssertionError(f"Unsupported query clause: {clause}")

    @staticmethod
    def _sort_values(source: Dict[str, Any]) -> List[Any]:
        epoch_ms = int(parse_iso8601(source["timestamp"]).timestamp() * 1000)
        return [epoch_ms, source.get("locationId")]

    def search(
        self,
        index: str,
        query: Dict[str, Any],
        size: int = 10,
        sort: Optional[List[Dict[str, Any]]] = None,
        search_after: Optional[List[Any]] = None,
        **kwargs,
    ):
        self._check_failure()
        self.search_calls += 1
        matched = [
            (doc_id, source)
            for doc_id, source in self.docs.get(index, {}).items()
            if self._matches(source, query)
        ]

        hits = []
        if sort:
            # timestamp descending, locationId ascending
            matched.sort(key=lambda item: (-self._sort_values(item[1])[0], self._sort_values(item[1])[1]))
            for doc_id, source in matched:
                hits.append({"_id": doc_id, "_source": copy.deepcopy(source), "sort": self._sort_values(source)})
            if search_after is not None:
                key = (-search_after[0], search_after[1])
                hits = [h for h in hits if (-h["sort"][0], h["sort"][1]) > key]
        else:
            hits = [{"_id": doc_id, "_source": copy.deepcopy(source)} for doc_id, source in matched]

        return {"hits": {"total": {"value": len(matched)}, "hits": hits[:size]}}

    def ping(self) -> bool:
        return self.available


@pytest.fixture
def fake_es() -> FakeElasticsearch:
    """In-memory Elasticsearch client."""
    return FakeElasticsearch()


@pytest.fixture
def settings() -> Settings:
    """Settings for tests, isolated from .env files."""
    return Settings(
        _env_file=None,
        environment="development",
        device_id="device-123",
        sender_email="tracker@example.com",
        recipient_email="owner@example.com",
        locations_index="locations-test",
    )


@pytest.fixture
def store(settings, fake_es) -> LocationStore:
    """LocationStore backed by the in-memory client."""
    return LocationStore(settings, client=fake_es)


@pytest.fixture
def sample_location() -> dict:
    """A valid payload as sent by the tracking app."""
    return {
        "timestamp": "2025-10-26T15:00:00Z",
        "latitude": 37.7749,
        "longitude": -122.4194,
        "accuracy": 5.0,
        "altitude": 12.5,
        "speed": 1.2,
        "city": "San Francisco",
        "state": "California",
        "country": "United States",
        "countryCode": "US",
    }
