"""Local record sources usable as the engine's fetch/update collaborators."""

import asyncio
import json
import os
import threading
from typing import Any, List

import structlog

from ..core.errors import SourceError
from .records import Record, Status

log = structlog.get_logger()


class JsonFileSource:
    """Findings stored in a JSON file.

    Accepts a bare array or the API envelope ``{"results": [...]}`` /
    ``{"data": [...]}``.
    """

    def __init__(self, path: str):
        self.path = path
        self._write_lock = threading.Lock()

    def _read_payload(self) -> Any:
        if not os.path.exists(self.path):
            raise SourceError(f"Record file not found: {self.path}")
        try:
            with open(self.path, "r") as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.warning("source.parse_error", file=self.path, error=str(e))
            raise SourceError(f"Cannot read {self.path}: {e}") from e

    @staticmethod
    def _items(payload: Any) -> List[Any]:
        if isinstance(payload, dict):
            for key in ("results", "data"):
                if isinstance(payload.get(key), list):
                    return payload[key]
            raise SourceError("JSON object has no 'results' or 'data' array")
        if not isinstance(payload, list):
            raise SourceError("Expected a JSON array of findings")
        return payload

    def read(self) -> List[Record]:
        records: List[Record] = []
        for item in self._items(self._read_payload()):
            try:
                records.append(Record.from_dict(item))
            except (ValueError, AttributeError) as e:
                log.warning("source.skip_record", file=self.path, error=str(e))
        return records

    async def fetch(self) -> List[Record]:
        return await asyncio.to_thread(self.read)

    def _write_status(self, record_id: str, status: Status) -> None:
        with self._write_lock:
            self._rewrite(record_id, status)

    def _rewrite(self, record_id: str, status: Status) -> None:
        payload = self._read_payload()
        items = self._items(payload)
        for item in items:
            if str(item.get("id")) == record_id:
                item["status"] = Status(status).value
                break
        else:
            raise SourceError(f"No finding with id {record_id}")
        with open(self.path, "w") as f:
            json.dump(payload, f, indent=2)

    async def update_status(self, record_id: str, status: Status) -> None:
        await asyncio.to_thread(self._write_status, record_id, status)
        log.info("source.status_updated", id=record_id, status=Status(status).value)
