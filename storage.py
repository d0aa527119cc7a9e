"""
TravelPro Desk - Entity Store.
Each collection (bookings, clients, colleagues, partners, profile) is kept
as one JSON payload under its own key. Every mutation rewrites the whole
collection; backups are one JSON document holding all five.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import String, Text, DateTime, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, mapped_column, DeclarativeBase

from models import utc_now, format_timestamp

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0.0"

STORAGE_KEYS = {
    "bookings": "travelpro_bookings",
    "clients": "travelpro_clients",
    "colleagues": "travelpro_colleagues",
    "partners": "travelpro_partners",
    "profile": "travelpro_profile",
}

LIST_KINDS = ("bookings", "clients", "colleagues", "partners")


class StorageError(Exception):
    """Raised when a collection could not be written."""
    pass


class BackupFormatError(ValueError):
    """Raised when a backup document cannot be understood."""
    pass


class Base(DeclarativeBase):
    """Base class for all models using SQLAlchemy 2.0 declarative style."""
    pass


# ==================== STORE ENTRY MODEL ====================

class StoreEntry(Base):
    """One persisted collection, keyed by its storage key."""
    __tablename__ = "store_entries"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "payload": json.loads(self.payload),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# ==================== HELPERS ====================

def backup_filename(day: Optional[date] = None) -> str:
    day = day or utc_now().date()
    return f"TravelPro_Backup_{day.isoformat()}.json"


def _storage_key(kind: str) -> str:
    try:
        return STORAGE_KEYS[kind]
    except KeyError:
        raise ValueError(f"Unknown collection: {kind}") from None


def parse_backup(document: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Parse a backup document and return the collections it carries.
    Keys absent (or null) in the document are left out of the result.
    """
    if isinstance(document, (str, bytes, bytearray)):
        try:
            data = json.loads(document)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise BackupFormatError(f"Backup is not valid JSON: {e}") from e
    else:
        data = document

    if not isinstance(data, dict):
        raise BackupFormatError("Backup must be a JSON object")

    collections = {}
    for kind in LIST_KINDS:
        value = data.get(kind)
        if value is None:
            continue
        if not isinstance(value, list):
            raise BackupFormatError(f"'{kind}' must be a list")
        collections[kind] = value

    profile = data.get("profile")
    if profile is not None:
        if not isinstance(profile, dict):
            raise BackupFormatError("'profile' must be an object")
        collections["profile"] = profile

    return collections


# ==================== ENTITY STORE ====================

class EntityStore:
    """Key/value persistence for the agency collections."""

    def __init__(self, session):
        self.session = session

    def _get(self, kind: str) -> Optional[StoreEntry]:
        return self.session.execute(
            select(StoreEntry).where(StoreEntry.key == _storage_key(kind))
        ).scalar_one_or_none()

    def _put(self, kind: str, value: Any) -> None:
        payload = json.dumps(value)
        entry = self._get(kind)
        if entry is None:
            self.session.add(StoreEntry(key=_storage_key(kind), payload=payload))
        else:
            entry.payload = payload

    def load(self, kind: str) -> List[dict]:
        """Load a collection; empty list when nothing was persisted."""
        if kind not in LIST_KINDS:
            raise ValueError(f"Not a list collection: {kind}")
        entry = self._get(kind)
        if entry is None:
            return []
        try:
            data = json.loads(entry.payload)
        except json.JSONDecodeError:
            logger.error("Stored payload for %s is corrupt; treating as empty", kind)
            return []
        return data if isinstance(data, list) else []

    def load_profile(self) -> Optional[dict]:
        entry = self._get("profile")
        if entry is None:
            return None
        try:
            data = json.loads(entry.payload)
        except json.JSONDecodeError:
            logger.error("Stored agent profile is corrupt; ignoring it")
            return None
        return data if isinstance(data, dict) else None

    def save(self, kind: str, items: Any) -> None:
        """Replace one collection."""
        self.save_many({kind: items})

    def save_many(self, collections: Dict[str, Any]) -> None:
        """Replace several collections in one transaction."""
        try:
            for kind, items in collections.items():
                self._put(kind, items)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception("Failed to persist %s", ", ".join(collections))
            raise StorageError(f"Failed to save {', '.join(collections)}: {e}") from e

    def export_all(self, now: Optional[datetime] = None) -> dict:
        """All five collections plus export date and format version."""
        return {
            "bookings": self.load("bookings"),
            "clients": self.load("clients"),
            "colleagues": self.load("colleagues"),
            "partners": self.load("partners"),
            "profile": self.load_profile(),
            "exportDate": format_timestamp(now or utc_now()),
            "version": BACKUP_VERSION,
        }

    def import_all(self, document: Union[str, bytes, Dict[str, Any]]) -> bool:
        """
        Overwrite every collection present in the document.
        Returns False, with nothing written, on any parse or write failure.
        """
        try:
            collections = parse_backup(document)
            self.save_many(collections)
        except (BackupFormatError, StorageError) as e:
            logger.error("Failed to import database: %s", e)
            return False
        logger.info("Imported backup collections: %s", ", ".join(collections) or "none")
        return True
