"""Generation metadata stores.

Writes go through ``try_write``, which hands back the captured exception
instead of raising. Callers log it and carry on; a missing record only costs
history and proxy lookups, never the generation itself.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Protocol, Tuple

from loguru import logger
from pymongo import DESCENDING, MongoClient

from ..app.models import GenerationRecord, GenerationStatus
from .types import StoreStatus


class GenerationStore(Protocol):
    name: str

    async def get(self, generation_id: str) -> Optional[GenerationRecord]: ...

    async def list_for_user(
        self,
        user_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
        status: Optional[GenerationStatus] = None,
    ) -> Tuple[List[GenerationRecord], int]: ...

    async def try_write(self, record: GenerationRecord) -> Optional[Exception]: ...

    async def status(self) -> StoreStatus: ...


class InMemoryGenerationStore:
    """Process-local store; the default when no database is configured.

    Meant for development and tests. Holds at most ``max_records`` entries and
    evicts the oldest first, so links to evicted generations stop resolving.
    """

    name = "memory"

    def __init__(self, max_records: int = 10_000) -> None:
        if max_records < 1:
            raise ValueError("max_records must be positive")
        self._records: Dict[str, GenerationRecord] = {}
        self._max_records = max_records
        self._lock = asyncio.Lock()

    async def get(self, generation_id: str) -> Optional[GenerationRecord]:
        async with self._lock:
            record = self._records.get(generation_id)
            if record is None:
                return None
            return record.model_copy(deep=True)

    async def list_for_user(
        self,
        user_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
        status: Optional[GenerationStatus] = None,
    ) -> Tuple[List[GenerationRecord], int]:
        async with self._lock:
            owned = [
                record
                for record in self._records.values()
                if record.user_id == user_id and (status is None or record.status == status)
            ]
        owned.sort(key=lambda record: record.created_at, reverse=True)
        page = owned[offset : offset + limit]
        return [record.model_copy(deep=True) for record in page], len(owned)

    async def try_write(self, record: GenerationRecord) -> Optional[Exception]:
        async with self._lock:
            self._records[record.generation_id] = record.model_copy(deep=True)
            # Dicts keep insertion order; updates keep a record's original slot.
            while len(self._records) > self._max_records:
                del self._records[next(iter(self._records))]
        return None

    async def status(self) -> StoreStatus:
        return StoreStatus(name=self.name, ready=True)


class MongoGenerationStore:
    """MongoDB-backed store. Blocking driver calls run on a worker thread."""

    name = "mongodb"

    def __init__(
        self,
        database_url: str,
        *,
        database_name: str = "texttomusic",
        collection_name: str = "generations",
        client: Optional[Any] = None,
    ) -> None:
        self._client = client or MongoClient(
            database_url,
            tz_aware=True,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=10000,
        )
        self._collection = self._client[database_name][collection_name]

    async def get(self, generation_id: str) -> Optional[GenerationRecord]:
        document = await asyncio.to_thread(
            self._collection.find_one, {"generation_id": generation_id}
        )
        if document is None:
            return None
        return _record_from_document(document)

    async def list_for_user(
        self,
        user_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
        status: Optional[GenerationStatus] = None,
    ) -> Tuple[List[GenerationRecord], int]:
        query: Dict[str, Any] = {"user_id": user_id}
        if status is not None:
            query["status"] = status.value

        def _fetch() -> Tuple[List[Dict[str, Any]], int]:
            cursor = (
                self._collection.find(query)
                .sort("created_at", DESCENDING)
                .skip(offset)
                .limit(limit)
            )
            return list(cursor), self._collection.count_documents(query)

        documents, total = await asyncio.to_thread(_fetch)
        return [_record_from_document(document) for document in documents], total

    async def try_write(self, record: GenerationRecord) -> Optional[Exception]:
        document = record.model_dump(mode="python")
        document["status"] = record.status.value
        try:
            await asyncio.to_thread(
                self._collection.replace_one,
                {"generation_id": record.generation_id},
                document,
                upsert=True,
            )
        except Exception as exc:  # noqa: BLE001
            return exc
        return None

    async def status(self) -> StoreStatus:
        try:
            await asyncio.to_thread(self._client.admin.command, "ping")
        except Exception as exc:  # noqa: BLE001
            return StoreStatus(name=self.name, ready=False, error=str(exc))
        return StoreStatus(name=self.name, ready=True)


def _record_from_document(document: Dict[str, Any]) -> GenerationRecord:
    payload = {key: value for key, value in document.items() if key != "_id"}
    return GenerationRecord.model_validate(payload)


async def record_best_effort(store: GenerationStore, record: GenerationRecord) -> bool:
    error = await store.try_write(record)
    if error is not None:
        logger.warning(
            "Generation store write failed for {} ({}): {}",
            record.generation_id,
            record.status.value,
            error,
        )
        return False
    return True
