"""Store error types"""


class StoreError(Exception):
    """A store operation failed"""


class DuplicateKeyError(StoreError):
    """Insert or replace would violate a unique field"""

    def __init__(self, collection: str, field: str, value):
        self.collection = collection
        self.field = field
        self.value = value
        super().__init__(f"Duplicate {field}={value!r} in {collection}")
