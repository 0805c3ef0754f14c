"""Database primitives shared by every feature."""

from .engine import build_engine, is_sqlite_memory_url
from .metadata import NAMING_CONVENTION, Base, metadata
from .mixins import TimestampMixin, ULIDPrimaryKeyMixin, generate_ulid, utc_now
from .types import UTCDateTime

__all__ = [
    "Base",
    "NAMING_CONVENTION",
    "TimestampMixin",
    "ULIDPrimaryKeyMixin",
    "UTCDateTime",
    "build_engine",
    "generate_ulid",
    "is_sqlite_memory_url",
    "metadata",
    "utc_now",
]
