"""Document store interface"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from .documents import SortSpec


class DocumentCollection(ABC):
    """
    One named collection of documents.

    Documents are plain dicts. Returned documents carry their id under "_id".
    Every write is a single-document operation; there are no multi-document
    transactions, so concurrent writers to one document are last-write-wins.
    """

    def __init__(self, name: str, key_field: Optional[str] = None, unique_fields: Sequence[str] = ()):
        """
        Args:
            name: Collection name
            key_field: Field whose value becomes the document id (None = generated id)
            unique_fields: Fields that must be unique across the collection
        """
        self.name = name
        self.key_field = key_field
        self.unique_fields = tuple(unique_fields)

    @abstractmethod
    def find(self, filter_: Optional[Dict[str, Any]] = None, sort: SortSpec = None,
             limit: Optional[int] = None, fields: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Return matching documents"""

    def find_one(self, filter_: Optional[Dict[str, Any]] = None, sort: SortSpec = None) -> Optional[Dict[str, Any]]:
        """Return the first matching document or None"""
        docs = self.find(filter_, sort=sort, limit=1)
        return docs[0] if docs else None

    @abstractmethod
    def insert(self, doc: Dict[str, Any]) -> str:
        """Insert a new document, returning its id. Raises DuplicateKeyError."""

    @abstractmethod
    def replace_one(self, filter_: Dict[str, Any], doc: Dict[str, Any], upsert: bool = False) -> bool:
        """Replace the first matching document. Returns True if a document was written."""

    @abstractmethod
    def find_one_and_update(self, filter_: Dict[str, Any], setters: Dict[str, Any],
                            upsert: bool = False, sort: SortSpec = None) -> Optional[Dict[str, Any]]:
        """
        Apply field-path setters to the first matching document.

        When nothing matches and upsert is set, a document is created from the
        filter's equality fields plus the setters. Returns the updated document.
        """

    @abstractmethod
    def delete_many(self, filter_: Dict[str, Any]) -> int:
        """Delete all matching documents, returning the count"""

    def count(self, filter_: Optional[Dict[str, Any]] = None) -> int:
        return len(self.find(filter_))

    def distinct(self, field: str, filter_: Optional[Dict[str, Any]] = None) -> List[Any]:
        values = []
        for doc in self.find(filter_):
            value = doc.get(field)
            if value is not None and value not in values:
                values.append(value)
        return values


class DocumentStore(ABC):
    """A set of named collections"""

    def __init__(self):
        self._collections: Dict[str, DocumentCollection] = {}

    def collection(self, name: str, key_field: Optional[str] = None,
                   unique_fields: Sequence[str] = ()) -> DocumentCollection:
        """Get (or declare on first use) a collection"""
        if name not in self._collections:
            self._collections[name] = self._create_collection(name, key_field, unique_fields)
        return self._collections[name]

    @abstractmethod
    def _create_collection(self, name: str, key_field: Optional[str],
                           unique_fields: Sequence[str]) -> DocumentCollection:
        ...

    def close(self) -> None:
        """Release backend resources"""
