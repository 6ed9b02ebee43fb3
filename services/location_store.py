"""
Elasticsearch-backed store for location records.

One document per observation, keyed by "{userId}#{timestamp}". Writes are
create-only so a repeated submission of the same observation never replaces
the stored record or its locationId.
"""

import asyncio
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from elasticsearch import ApiError, ConflictError, Elasticsearch, TransportError
from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.settings import Settings, get_settings
from errors.exceptions import store_unavailable
from validation.validator import format_iso8601

logger = logging.getLogger(__name__)

# Page size for range queries; windows larger than this are fetched with search_after
PAGE_SIZE = 500

GEOCODING_FIELDS = ("city", "state", "country", "countryCode")


def utc_now_iso() -> str:
    return format_iso8601(datetime.now(timezone.utc))


class LocationRecord(BaseModel):
    """
    A single GPS observation as stored in the locations index.

    Field aliases are the stored document names.
    """

    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(..., alias="userId", min_length=1)
    timestamp: str = Field(..., min_length=1)
    location_id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="locationId")
    latitude: float
    longitude: float
    accuracy: float
    altitude: float
    speed: float
    received_at: str = Field(default_factory=utc_now_iso, alias="receivedAt")
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = Field(default=None, alias="countryCode")

    @field_validator("city", "state", "country", "country_code", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Optional[str]:
        """Geocoding values are kept only when they are non-empty strings."""
        if not isinstance(v, str):
            return None
        text = v.strip()
        return text or None

    @classmethod
    def from_payload(cls, device_id: str, payload: Dict[str, Any]) -> "LocationRecord":
        """
        Build a record from an already validated request payload.

        A fresh locationId and receivedAt are assigned here, before the write.
        """
        data = {
            "userId": device_id,
            "timestamp": payload["timestamp"],
            "latitude": payload["latitude"],
            "longitude": payload["longitude"],
            "accuracy": payload["accuracy"],
            "altitude": payload["altitude"],
            "speed": payload["speed"],
        }
        for field in GEOCODING_FIELDS:
            if payload.get(field):
                data[field] = payload[field]
        return cls(**data)

    @property
    def document_id(self) -> str:
        return f"{self.device_id}#{self.timestamp}"

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class LocationStore:
    """
    Access to the locations index.

    The Elasticsearch client is created on first use and reused for the
    lifetime of the store. All public operations are async and run the
    synchronous client in a worker thread.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[Elasticsearch] = None,
    ):
        self.settings = settings or get_settings()
        self.index = self.settings.locations_index
        self._client = client
        self._client_lock = threading.Lock()

    @property
    def client(self) -> Elasticsearch:
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = self._connect()
        return self._client

    def _connect(self) -> Elasticsearch:
        endpoint = self.settings.elastic_endpoint
        logger.info("Connecting to Elasticsearch", extra={
            "extra_data": {"endpoint": endpoint, "index": self.index}
        })
        kwargs: Dict[str, Any] = {"request_timeout": self.settings.elastic_request_timeout}
        if self.settings.elastic_api_key:
            kwargs["api_key"] = self.settings.elastic_api_key
        return Elasticsearch(endpoint, **kwargs)

    def _handle_store_error(self, operation: str, error: Exception, message: str) -> None:
        """
        Log a store failure and raise it as a client-safe AppException.

        Raises:
            AppException: With STORE_UNAVAILABLE error code
        """
        logger.error(f"Location store {operation} failed: {error}", extra={
            "extra_data": {
                "operation": operation,
                "index": self.index,
                "error_type": type(error).__name__,
            }
        })
        raise store_unavailable(message=message)

    @staticmethod
    def _get_locations_mapping() -> Dict[str, Any]:
        return {
            "properties": {
                "userId": {"type": "keyword"},
                "timestamp": {"type": "date"},
                "locationId": {"type": "keyword"},
                "latitude": {"type": "float"},
                "longitude": {"type": "float"},
                "accuracy": {"type": "float"},
                "altitude": {"type": "float"},
                "speed": {"type": "float"},
                "receivedAt": {"type": "date"},
                "city": {"type": "keyword"},
                "state": {"type": "keyword"},
                "country": {"type": "keyword"},
                "countryCode": {"type": "keyword"},
            }
        }

    async def ensure_index(self) -> None:
        """Create the locations index with its mapping if it does not exist."""

        def _do_ensure() -> None:
            if self.client.indices.exists(index=self.index):
                logger.info(f"Index already exists: {self.index}")
                return
            try:
                self.client.indices.create(index=self.index, mappings=self._get_locations_mapping())
                logger.info(f"Created index: {self.index}")
            except ApiError:
                # Another process may have created it between the two calls
                if not self.client.indices.exists(index=self.index):
                    raise

        try:
            await asyncio.to_thread(_do_ensure)
        except (ApiError, TransportError) as e:
            self._handle_store_error("ensure_index", e, "Failed to prepare location store")

    async def put_if_absent(self, record: LocationRecord) -> str:
        """
        Store a record unless one already exists for its (userId, timestamp).

        Args:
            record: The record to write, carrying a candidate locationId

        Returns:
            The locationId of the stored record; the candidate's when this call
            created it, otherwise the one already stored

        Raises:
            AppException: If the store fails for any reason other than the conflict
        """
        doc_id = record.document_id

        def _do_create() -> str:
            try:
                self.client.create(index=self.index, id=doc_id, document=record.to_document())
                return record.location_id
            except ConflictError:
                existing = self.client.get(index=self.index, id=doc_id)
                stored_id = existing["_source"]["locationId"]
                logger.info("Duplicate location ignored", extra={
                    "extra_data": {"document_id": doc_id, "location_id": stored_id}
                })
                return stored_id

        try:
            return await asyncio.to_thread(_do_create)
        except (ApiError, TransportError) as e:
            self._handle_store_error("put_if_absent", e, "Failed to save location")

    async def query_range(
        self,
        device_id: str,
        start: datetime,
        end: datetime,
    ) -> List[Dict[str, Any]]:
        """
        All records for a device with start <= timestamp <= end, newest first.

        Raises:
            AppException: If the store cannot be read
        """
        query = {
            "bool": {
                "filter": [
                    {"term": {"userId": device_id}},
                    {"range": {"timestamp": {
                        "gte": format_iso8601(start, timespec="milliseconds"),
                        "lte": format_iso8601(end, timespec="milliseconds"),
                    }}},
                ]
            }
        }
        sort = [{"timestamp": {"order": "desc"}}, {"locationId": {"order": "asc"}}]

        def _do_query() -> List[Dict[str, Any]]:
            results: List[Dict[str, Any]] = []
            search_after = None
            while True:
                params: Dict[str, Any] = {
                    "index": self.index,
                    "query": query,
                    "sort": sort,
                    "size": PAGE_SIZE,
                }
                if search_after is not None:
                    params["search_after"] = search_after
                response = self.client.search(**params)
                hits = response["hits"]["hits"]
                results.extend(hit["_source"] for hit in hits)
                if len(hits) < PAGE_SIZE:
                    return results
                search_after = hits[-1]["sort"]

        try:
            return await asyncio.to_thread(_do_query)
        except (ApiError, TransportError) as e:
            self._handle_store_error("query_range", e, "Failed to read locations")

    async def find_by_location_id(self, location_id: str) -> Optional[Dict[str, Any]]:
        """Look up a record by its locationId; None when absent."""

        def _do_find() -> Optional[Dict[str, Any]]:
            response = self.client.search(
                index=self.index,
                query={"term": {"locationId": location_id}},
                size=1,
            )
            hits = response["hits"]["hits"]
            return hits[0]["_source"] if hits else None

        try:
            return await asyncio.to_thread(_do_find)
        except (ApiError, TransportError) as e:
            self._handle_store_error("find_by_location_id", e, "Failed to read locations")

    async def ping(self) -> bool:
        """True when the cluster answers."""
        try:
            return bool(await asyncio.to_thread(self.client.ping))
        except (ApiError, TransportError) as e:
            logger.warning(f"Location store ping failed: {e}")
            return False


_location_store: Optional[LocationStore] = None
_location_store_lock = threading.Lock()


def get_location_store(settings: Optional[Settings] = None) -> LocationStore:
    """
    Get the process-wide location store, creating it on first use.

    settings only applies to the call that creates the store.
    """
    global _location_store
    if _location_store is None:
        with _location_store_lock:
            if _location_store is None:
                _location_store = LocationStore(settings)
    return _location_store


def reset_location_store() -> None:
    """Drop the process-wide store. Intended for tests."""
    global _location_store
    with _location_store_lock:
        _location_store = None
