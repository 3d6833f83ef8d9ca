from __future__ import annotations

import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from mcq_engine.core.settings import settings

logger = logging.getLogger(__name__)

STAGES = ("to_be_evaluated", "good", "modified", "final")
STAGE_COLLECTIONS = {
    "to_be_evaluated": "mcq_to_be_evaluated",
    "good": "good_mcqs",
    "modified": "modified_mcqs",
    "final": "mcqs",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_stage(stage: str) -> str:
    if stage not in STAGE_COLLECTIONS:
        raise ValueError(f"Unsupported stage: {stage}")
    return stage


def _sanitize_mongo_error(raw: str) -> str:
    if not raw:
        return raw
    # Hide credentials embedded in connection URLs.
    return re.sub(r"(mongodb(?:\+srv)?://)([^/@\s]+)@", r"\1***:***@", raw)


class ContentStore(ABC):
    """Chapter trees, MCQ pipeline stages and evaluation instructions."""

    @abstractmethod
    def find_mapping(self, category: str, chapter: str) -> dict | None:
        raise NotImplementedError

    @abstractmethod
    def save_mapping(self, category: str, chapter: str, tree: dict) -> dict:
        raise NotImplementedError

    @abstractmethod
    def list_mappings(self, category: str | None = None) -> list[dict]:
        raise NotImplementedError

    @abstractmethod
    def insert_mcq(self, stage: str, doc: dict) -> str:
        raise NotImplementedError

    @abstractmethod
    def list_mcqs(self, stage: str, limit: int | None = None) -> list[dict]:
        raise NotImplementedError

    @abstractmethod
    def get_mcq(self, stage: str, mcq_id: str) -> dict | None:
        raise NotImplementedError

    @abstractmethod
    def delete_mcq(self, stage: str, mcq_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def clear_stage(self, stage: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_instruction(self, key: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    def save_instruction(self, key: str, instruction: str) -> None:
        raise NotImplementedError

    def count_mcqs(self, stage: str) -> int:
        return len(self.list_mcqs(stage))

    def stage_counts(self) -> dict[str, int]:
        return {stage: self.count_mcqs(stage) for stage in STAGES}

    def status(self) -> dict:
        return {"backend": "unknown"}


class FileContentStore(ContentStore):
    """JSON files under the runtime data dir; one file per stage plus mappings and instructions."""

    def __init__(self, base_dir: Path):
        self.base = base_dir
        self.base.mkdir(parents=True, exist_ok=True)
        self.mappings_file = self.base / "book_mappings.json"
        self.instructions_file = self.base / "evaluation_instructions.json"
        self.stage_files = {stage: self.base / f"{name}.json" for stage, name in STAGE_COLLECTIONS.items()}

    @staticmethod
    def _read_json(path: Path, default):
        if not path.exists():
            return default
        return json.loads(path.read_text(encoding="utf-8"))

    @staticmethod
    def _write_json(path: Path, payload) -> None:
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)

    @staticmethod
    def _mapping_key(category: str, chapter: str) -> str:
        return f"{category}::{chapter}"

    def find_mapping(self, category: str, chapter: str) -> dict | None:
        return self._read_json(self.mappings_file, {}).get(self._mapping_key(category, chapter))

    def save_mapping(self, category: str, chapter: str, tree: dict) -> dict:
        mappings = self._read_json(self.mappings_file, {})
        doc = {"category": category, "chapter": chapter, "mappings": tree, "mapped": True, "updated_at": _now()}
        mappings[self._mapping_key(category, chapter)] = doc
        self._write_json(self.mappings_file, mappings)
        return doc

    def list_mappings(self, category: str | None = None) -> list[dict]:
        docs = self._read_json(self.mappings_file, {}).values()
        return [doc for doc in docs if category is None or doc.get("category") == category]

    def _stage_docs(self, stage: str) -> list[dict]:
        return self._read_json(self.stage_files[_check_stage(stage)], [])

    def insert_mcq(self, stage: str, doc: dict) -> str:
        docs = self._stage_docs(stage)
        record = {**doc, "id": doc.get("id") or uuid.uuid4().hex}
        record.setdefault("createdAt", _now())
        docs.append(record)
        self._write_json(self.stage_files[stage], docs)
        return record["id"]

    def list_mcqs(self, stage: str, limit: int | None = None) -> list[dict]:
        docs = self._stage_docs(stage)
        return docs[:limit] if limit else docs

    def get_mcq(self, stage: str, mcq_id: str) -> dict | None:
        return next((doc for doc in self._stage_docs(stage) if doc.get("id") == mcq_id), None)

    def delete_mcq(self, stage: str, mcq_id: str) -> bool:
        docs = self._stage_docs(stage)
        remaining = [doc for doc in docs if doc.get("id") != mcq_id]
        if len(remaining) == len(docs):
            return False
        self._write_json(self.stage_files[stage], remaining)
        return True

    def clear_stage(self, stage: str) -> int:
        count = len(self._stage_docs(stage))
        self._write_json(self.stage_files[stage], [])
        return count

    def get_instruction(self, key: str) -> str | None:
        return self._read_json(self.instructions_file, {}).get(key)

    def save_instruction(self, key: str, instruction: str) -> None:
        instructions = self._read_json(self.instructions_file, {})
        instructions[key] = instruction
        self._write_json(self.instructions_file, instructions)

    def status(self) -> dict:
        return {"backend": "file", "path": str(self.base)}


class MongoContentStore(ContentStore):
    def __init__(self, mongodb_url: str, db_name: str):
        from pymongo import ASCENDING, DESCENDING, MongoClient

        self._ASC = ASCENDING
        self._DESC = DESCENDING
        self._client = MongoClient(mongodb_url, serverSelectionTimeoutMS=3000)
        self._db = self._client[db_name]
        self._mappings = self._db["book_mappings"]
        self._instructions = self._db["evaluation_instructions"]
        self._stages = {stage: self._db[name] for stage, name in STAGE_COLLECTIONS.items()}
        self._ensure_indexes()

    def _ensure_indexes(self) -> None:
        self._mappings.create_index(
            [("category", self._ASC), ("chapter", self._ASC)],
            unique=True,
            name="ux_mappings_category_chapter",
        )
        self._instructions.create_index([("parameter", self._ASC)], unique=True, name="ux_instructions_parameter")
        for stage, collection in self._stages.items():
            collection.create_index([("createdAt", self._DESC)], name=f"ix_{stage}_created_at_desc")

    @staticmethod
    def _out(doc: dict | None) -> dict | None:
        if doc is None:
            return None
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return doc

    def find_mapping(self, category: str, chapter: str) -> dict | None:
        return self._mappings.find_one({"category": category, "chapter": chapter}, {"_id": 0})

    def save_mapping(self, category: str, chapter: str, tree: dict) -> dict:
        doc = {"category": category, "chapter": chapter, "mappings": tree, "mapped": True, "updated_at": _now()}
        self._mappings.replace_one({"category": category, "chapter": chapter}, doc, upsert=True)
        doc.pop("_id", None)
        return doc

    def list_mappings(self, category: str | None = None) -> list[dict]:
        query = {} if category is None else {"category": category}
        return list(self._mappings.find(query, {"_id": 0}))

    def insert_mcq(self, stage: str, doc: dict) -> str:
        record = {key: value for key, value in doc.items() if key != "id"}
        record["_id"] = doc.get("id") or uuid.uuid4().hex
        record.setdefault("createdAt", _now())
        self._stages[_check_stage(stage)].insert_one(record)
        return record["_id"]

    def list_mcqs(self, stage: str, limit: int | None = None) -> list[dict]:
        cursor = self._stages[_check_stage(stage)].find({}).sort("createdAt", self._ASC)
        if limit:
            cursor = cursor.limit(limit)
        return [self._out(doc) for doc in cursor]

    def count_mcqs(self, stage: str) -> int:
        return self._stages[_check_stage(stage)].count_documents({})

    def get_mcq(self, stage: str, mcq_id: str) -> dict | None:
        return self._out(self._stages[_check_stage(stage)].find_one({"_id": mcq_id}))

    def delete_mcq(self, stage: str, mcq_id: str) -> bool:
        return self._stages[_check_stage(stage)].delete_one({"_id": mcq_id}).deleted_count == 1

    def clear_stage(self, stage: str) -> int:
        return self._stages[_check_stage(stage)].delete_many({}).deleted_count

    def get_instruction(self, key: str) -> str | None:
        doc = self._instructions.find_one({"parameter": key})
        return doc.get("instruction") if doc else None

    def save_instruction(self, key: str, instruction: str) -> None:
        self._instructions.update_one(
            {"parameter": key},
            {"$set": {"instruction": instruction, "updated_at": _now()}},
            upsert=True,
        )

    def status(self) -> dict:
        try:
            self._client.admin.command("ping")
            connected, error = True, None
        except Exception as exc:  # noqa: BLE001
            connected, error = False, _sanitize_mongo_error(str(exc))
        return {"backend": "mongo", "db_name": self._db.name, "connected": connected, "error": error}


def build_content_store() -> ContentStore:
    backend = settings.store_backend.strip().lower()
    if backend == "mongo":
        return MongoContentStore(settings.mongodb_url, settings.mongodb_db_name)
    if backend != "file":
        logger.warning("Unknown STORE_BACKEND=%s; falling back to file store", backend)
    return FileContentStore(Path(settings.runtime_data_dir))
