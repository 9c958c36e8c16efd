"""
Persistence collaborators.

The pipeline only needs a narrow slice of the listing database and of the
object storage; these base classes describe that slice. The in-memory
implementations back the CLI dry runs and the tests.
"""
import copy
from typing import Any, Dict, List, Optional

from kondo_scraping.models.listing import MediaRecord
from kondo_scraping.utils.logger import LayerLogger


class KondoStore:
    """Listing records, addressed by integer id."""

    async def find_by_id(self, kondo_id: int) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def find_pending(self, kondo_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Listings in status "scraping", optionally just one id."""
        raise NotImplementedError

    async def update(self, kondo_id: int, values: Dict[str, Any]) -> None:
        raise NotImplementedError


class MediaStore:
    async def bulk_create(self, records: List[MediaRecord]) -> int:
        raise NotImplementedError


class ObjectStorage:
    async def upload(self, key: str, content: bytes, content_type: str) -> str:
        """Store the bytes and return their public URL."""
        raise NotImplementedError


class InMemoryKondoStore(KondoStore):
    PENDING_STATUS = "scraping"

    def __init__(self, records: Optional[List[Dict[str, Any]]] = None):
        self.records: Dict[int, Dict[str, Any]] = {
            record["id"]: copy.deepcopy(record) for record in records or []
        }
        self.updates: List[Dict[str, Any]] = []
        self.logger = LayerLogger("kondo_store")

    async def find_by_id(self, kondo_id: int) -> Optional[Dict[str, Any]]:
        record = self.records.get(kondo_id)
        return copy.deepcopy(record) if record is not None else None

    async def find_pending(self, kondo_id: Optional[int] = None) -> List[Dict[str, Any]]:
        pending = [
            copy.deepcopy(record)
            for record in self.records.values()
            if record.get("status") == self.PENDING_STATUS
        ]
        if kondo_id is not None:
            pending = [record for record in pending if record["id"] == kondo_id]
        return sorted(pending, key=lambda record: record["id"])

    async def update(self, kondo_id: int, values: Dict[str, Any]) -> None:
        if kondo_id not in self.records:
            raise KeyError(kondo_id)
        self.records[kondo_id].update(copy.deepcopy(values))
        self.updates.append({"id": kondo_id, "values": values})
        self.logger.log_action("update", "completed", kondo_id=kondo_id, fields=sorted(values))


class InMemoryMediaStore(MediaStore):
    def __init__(self):
        self.records: List[MediaRecord] = []

    async def bulk_create(self, records: List[MediaRecord]) -> int:
        self.records.extend(records)
        return len(records)


class InMemoryObjectStorage(ObjectStorage):
    def __init__(self, base_url: str = "https://storage.local"):
        self.base_url = base_url.rstrip("/")
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}

    async def upload(self, key: str, content: bytes, content_type: str) -> str:
        self.objects[key] = content
        self.content_types[key] = content_type
        return f"{self.base_url}/{key}"
