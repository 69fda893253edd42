"""
Flat-file persistence for record collections.

One collection lives in one JSON file (a list of records). The file is read once
at construction and rewritten atomically after every mutation.
"""

import json
import os
import tempfile
from pathlib import Path

import structlog

from core.services.records import InMemoryRecordStore, Record

logger = structlog.get_logger(__name__)


class JsonFileRecordStore(InMemoryRecordStore):
    """RecordStore backed by `<data_dir>/<collection>.json`."""

    def __init__(self, data_dir: str | Path, collection: str) -> None:
        self.path = Path(data_dir) / f"{collection}.json"
        self.logger = logger.bind(component="json_record_store", path=str(self.path))
        super().__init__(collection, self._load())

    def _load(self) -> list[Record]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except json.JSONDecodeError as e:
            # A corrupt roster must not be silently replaced by defaults.
            self.logger.error("record_file_corrupt", error=str(e))
            raise
        if not isinstance(payload, list):
            raise ValueError(f"{self.path} must contain a JSON list of records")
        self.logger.info("records_loaded", count=len(payload))
        return payload

    def _after_mutation(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        records = [self._records[key] for key in self._records]
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(records, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self.logger.debug("records_written", count=len(records))
