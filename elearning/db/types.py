import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, String
from sqlalchemy.dialects.postgresql import ARRAY as PG_ARRAY
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator

# Untyped structured data (maps, lists, nested values)
FreeForm = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")

# Ordered list of strings; a real array in PostgreSQL
StringList = JSON().with_variant(PG_ARRAY(String), "postgresql")


class IdList(TypeDecorator):
    """List of record identifiers, stored as JSON strings and loaded as UUIDs."""

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return [str(item) for item in value]

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return [uuid.UUID(str(item)) for item in value]


def utcnow() -> datetime:
    # Timestamps are stored as naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)
