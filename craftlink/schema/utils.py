from datetime import timezone
from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator
from uuid6 import uuid7
from craftlink.common.utils import now


def new_id() -> str:
    return str(uuid7())


class TZDateTime(TypeDecorator):
    """Stores UTC and always hands back aware datetimes, also on backends that drop tzinfo (sqlite)."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


__all__ = ["TZDateTime", "new_id", "now"]
