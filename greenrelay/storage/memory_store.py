"""In-process document store (local development and tests)"""

import copy
import logging
import threading
import uuid
from typing import Any, Dict, List, Optional, Sequence

from .base import DocumentCollection, DocumentStore
from .documents import (
    SortSpec,
    apply_setters,
    equality_fields,
    matches,
    project,
    sort_documents,
)
from .errors import DuplicateKeyError

logger = logging.getLogger(__name__)


class MemoryCollection(DocumentCollection):
    """Thread-safe dict-backed collection with unique-field enforcement"""

    def __init__(self, name: str, key_field: Optional[str] = None, unique_fields: Sequence[str] = ()):
        super().__init__(name, key_field, unique_fields)
        self._docs: Dict[str, Dict[str, Any]] = {}  # insertion ordered
        self._lock = threading.RLock()

    def _check_unique(self, doc: Dict[str, Any], exclude_id: Optional[str] = None) -> None:
        for field in self.unique_fields:
            value = doc.get(field)
            if value is None:
                continue
            for doc_id, existing in self._docs.items():
                if doc_id != exclude_id and existing.get(field) == value:
                    raise DuplicateKeyError(self.name, field, value)

    def _with_id(self, doc_id: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        result = copy.deepcopy(doc)
        result["_id"] = doc_id
        return result

    def _matching_ids(self, filter_, sort: SortSpec = None) -> List[str]:
        matched = [self._with_id(doc_id, doc) for doc_id, doc in self._docs.items() if matches(doc, filter_)]
        return [d["_id"] for d in sort_documents(matched, sort)]

    def find(self, filter_=None, sort: SortSpec = None, limit=None, fields=None):
        with self._lock:
            docs = [self._with_id(doc_id, self._docs[doc_id]) for doc_id in self._matching_ids(filter_, sort)]
        if limit is not None:
            docs = docs[:limit]
        return [project(d, fields) for d in docs]

    def insert(self, doc):
        data = {k: v for k, v in doc.items() if k != "_id"}
        with self._lock:
            if self.key_field:
                doc_id = str(data[self.key_field])
                if doc_id in self._docs:
                    raise DuplicateKeyError(self.name, self.key_field, doc_id)
            else:
                doc_id = uuid.uuid4().hex
            self._check_unique(data)
            self._docs[doc_id] = copy.deepcopy(data)
        return doc_id

    def replace_one(self, filter_, doc, upsert=False):
        data = {k: v for k, v in doc.items() if k != "_id"}
        with self._lock:
            ids = self._matching_ids(filter_)
            if not ids:
                if upsert:
                    self.insert(data)
                    return True
                return False
            doc_id = ids[0]
            self._check_unique(data, exclude_id=doc_id)
            self._docs[doc_id] = copy.deepcopy(data)
            return True

    def find_one_and_update(self, filter_, setters, upsert=False, sort: SortSpec = None):
        with self._lock:
            ids = self._matching_ids(filter_, sort)
            if ids:
                doc_id = ids[0]
                updated = apply_setters(self._docs[doc_id], setters)
                self._check_unique(updated, exclude_id=doc_id)
                self._docs[doc_id] = updated
                return self._with_id(doc_id, updated)
            if not upsert:
                return None
            created = apply_setters(equality_fields(filter_), setters)
            doc_id = self.insert(created)
            return self._with_id(doc_id, created)

    def delete_many(self, filter_):
        with self._lock:
            ids = self._matching_ids(filter_)
            for doc_id in ids:
                del self._docs[doc_id]
        return len(ids)


class MemoryDocumentStore(DocumentStore):
    """Document store kept in process memory; contents vanish on restart"""

    def __init__(self):
        super().__init__()
        logger.info("Using in-memory document store")

    def _create_collection(self, name, key_field, unique_fields):
        return MemoryCollection(name, key_field, unique_fields)
