"""Firestore-backed document store"""

import hashlib
import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core.exceptions import Conflict
from google.cloud import firestore as gcloud_firestore

from .. import config
from .base import DocumentCollection, DocumentStore
from .documents import (
    SortSpec,
    apply_setters,
    equality_fields,
    project,
    sort_documents,
)
from .errors import DuplicateKeyError, StoreError

logger = logging.getLogger(__name__)

_OPERATORS = {
    "$lt": "<",
    "$lte": "<=",
    "$gt": ">",
    "$gte": ">=",
    "$ne": "!=",
    "$in": "in",
}

# Firestore caps a write batch at 500 operations
_BATCH_LIMIT = 500


class FirestoreCollection(DocumentCollection):
    """Collection mapped onto a top-level Firestore collection"""

    def __init__(self, db, name: str, key_field: Optional[str] = None, unique_fields: Sequence[str] = ()):
        super().__init__(name, key_field, unique_fields)
        self._db = db
        self._ref = db.collection(name)
        self._claims = db.collection(f"{name}_unique")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _build_query(self, filter_: Dict[str, Any]):
        query = self._ref
        for field, expected in filter_.items():
            if isinstance(expected, dict) and expected and all(k.startswith("$") for k in expected):
                for op, operand in expected.items():
                    if op not in _OPERATORS:
                        raise StoreError(f"Unsupported filter operator: {op}")
                    query = query.where(field, _OPERATORS[op], operand)
            else:
                query = query.where(field, "==", expected)
        return query

    @staticmethod
    def _to_dict(snapshot) -> Dict[str, Any]:
        doc = snapshot.to_dict() or {}
        doc["_id"] = snapshot.id
        return doc

    def find(self, filter_=None, sort: SortSpec = None, limit=None, fields=None):
        filter_ = dict(filter_ or {})
        branches = filter_.pop("$or", None)

        if branches:
            # Firestore OR queries need composite indexes; run each branch and merge
            merged: Dict[str, Dict[str, Any]] = {}
            for branch in branches:
                for snapshot in self._build_query({**filter_, **branch}).stream():
                    merged.setdefault(snapshot.id, self._to_dict(snapshot))
            docs = sort_documents(merged.values(), sort)
            if limit is not None:
                docs = docs[:limit]
        else:
            query = self._build_query(filter_)
            for field, direction in sort or []:
                query = query.order_by(
                    field,
                    direction=gcloud_firestore.Query.DESCENDING if direction < 0 else gcloud_firestore.Query.ASCENDING,
                )
            if limit is not None:
                query = query.limit(limit)
            docs = [self._to_dict(snapshot) for snapshot in query.stream()]

        return [project(d, fields) for d in docs]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _claim_fields(self) -> List[str]:
        return [field for field in self.unique_fields if field != self.key_field]

    def _claim_ref(self, field: str, value):
        digest = hashlib.sha256(str(value).encode("utf-8")).hexdigest()
        return self._claims.document(f"{field}:{digest}")

    def _check_unique(self, data: Dict[str, Any], exclude_id: Optional[str] = None) -> None:
        # Fast path with a precise error; the claim documents are what make it atomic
        for field in self._claim_fields():
            if data.get(field) is None:
                continue
            for snapshot in self._ref.where(field, "==", data[field]).limit(2).stream():
                if snapshot.id != exclude_id:
                    raise DuplicateKeyError(self.name, field, data[field])

    def _commit(self, doc_ref, data: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> None:
        """
        Write a document together with its unique-value claims in one batch.

        A claim is a document in "<collection>_unique" keyed by field and value,
        written with create(), so a concurrent writer holding the same value
        makes the whole batch fail. previous is the stored document on
        replace; claims for values that changed are moved.
        """
        batch = self._db.batch()
        for field in self._claim_fields():
            new_value = data.get(field)
            old_value = previous.get(field) if previous is not None else None
            if previous is not None and new_value == old_value:
                continue
            if new_value is not None:
                batch.create(self._claim_ref(field, new_value), {"collection": self.name, "docId": doc_ref.id})
            if old_value is not None:
                batch.delete(self._claim_ref(field, old_value))

        if previous is None:
            batch.create(doc_ref, data)
        else:
            batch.set(doc_ref, data)

        try:
            batch.commit()
        except Conflict:
            # Name the field when the rival write is already visible
            self._check_unique(data, exclude_id=doc_ref.id)
            key = self.key_field or "_id"
            raise DuplicateKeyError(self.name, key, data.get(self.key_field, doc_ref.id))

    def insert(self, doc):
        data = {k: v for k, v in doc.items() if k != "_id"}
        self._check_unique(data)
        doc_ref = self._ref.document(str(data[self.key_field])) if self.key_field else self._ref.document()
        self._commit(doc_ref, data)
        return str(data[self.key_field]) if self.key_field else doc_ref.id

    def replace_one(self, filter_, doc, upsert=False):
        data = {k: v for k, v in doc.items() if k != "_id"}
        existing = self.find_one(filter_)
        if existing is None:
            if upsert:
                self.insert(data)
                return True
            return False
        doc_id = existing.pop("_id")
        self._check_unique(data, exclude_id=doc_id)
        self._commit(self._ref.document(doc_id), data, previous=existing)
        return True

    def find_one_and_update(self, filter_, setters, upsert=False, sort: SortSpec = None):
        existing = self.find_one(filter_, sort=sort)
        if existing is not None:
            doc_id = existing.pop("_id")
            updated = apply_setters(existing, setters)
            self._commit(self._ref.document(doc_id), updated, previous=existing)
            updated["_id"] = doc_id
            return updated
        if not upsert:
            return None
        created = apply_setters(equality_fields(filter_), setters)
        created["_id"] = self.insert(created)
        return created

    def delete_many(self, filter_):
        claim_fields = self._claim_fields()
        deleted = 0
        batch = self._db.batch()
        pending = 0
        for doc in self.find(filter_):
            claims = [self._claim_ref(f, doc[f]) for f in claim_fields if doc.get(f) is not None]
            if pending + 1 + len(claims) > _BATCH_LIMIT:
                batch.commit()
                batch = self._db.batch()
                pending = 0
            batch.delete(self._ref.document(doc["_id"]))
            for claim in claims:
                batch.delete(claim)
            pending += 1 + len(claims)
            deleted += 1
        if pending:
            batch.commit()
        return deleted


class FirestoreDocumentStore(DocumentStore):
    """Document store on Cloud Firestore via firebase_admin"""

    def __init__(self, firestore_db=None, credentials_path: str = None):
        super().__init__()
        self.credentials_path = credentials_path or config.FIREBASE_CREDENTIALS_PATH
        self.firestore_db = firestore_db
        self.connected = firestore_db is not None

    def connect(self):
        """Initialize Firebase connection"""
        if self.connected:
            return
        try:
            if not firebase_admin._apps:
                cred_path = self.credentials_path
                logger.info(f"Loading Firebase credentials from: {cred_path}")

                if not os.path.exists(cred_path):
                    raise FileNotFoundError(f"Firebase credentials not found at {cred_path}")
                if not os.access(cred_path, os.R_OK):
                    raise PermissionError(f"No read permission for Firebase credentials")

                cred = credentials.Certificate(cred_path)
                firebase_admin.initialize_app(cred, {"projectId": config.FIREBASE_PROJECT_ID})

            self.firestore_db = firestore.client()
            self.connected = True
            logger.info("Connected to Firestore successfully")

        except Exception as e:
            logger.error(f"Failed to connect to Firestore: {e}", exc_info=True)
            raise

    def _create_collection(self, name, key_field, unique_fields):
        if not self.connected:
            self.connect()
        return FirestoreCollection(self.firestore_db, name, key_field, unique_fields)

    def close(self):
        if self.connected and self.firestore_db is not None:
            try:
                self.firestore_db.close()
            except Exception as e:
                logger.warning(f"Error closing Firestore client: {e}")
        self.connected = False
        logger.info("Disconnected from Firestore")
