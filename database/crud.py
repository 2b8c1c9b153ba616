#
# Copyright 2025 EDT&Partners
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

import time
from typing import Any, Dict, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from database.models import ToolMetadataEntry, CacheEntry, LTIConsumer, LTINonce

# Tool metadata CRUD operations
def get_tool_metadata(db: Session, tool_id: str, key: str) -> Optional[ToolMetadataEntry]:
    return db.query(ToolMetadataEntry).filter(
        ToolMetadataEntry.tool_id == tool_id,
        ToolMetadataEntry.key == key
    ).first()

def list_tool_metadata(db: Session, tool_id: str) -> Dict[str, Any]:
    entries = db.query(ToolMetadataEntry).filter(ToolMetadataEntry.tool_id == tool_id).all()
    return {entry.key: entry.value for entry in entries}

def set_tool_metadata(db: Session, tool_id: str, key: str, value: Any) -> ToolMetadataEntry:
    """Insert or update a metadata value.

    A concurrent insert of the same key by another process surfaces as an
    IntegrityError; the row is then updated instead (last write wins)."""
    try:
        entry = get_tool_metadata(db, tool_id, key)
        if entry is None:
            entry = ToolMetadataEntry(tool_id=tool_id, key=key, value=value)
            db.add(entry)
        else:
            entry.value = value
        db.commit()
        return entry
    except IntegrityError:
        db.rollback()
        entry = get_tool_metadata(db, tool_id, key)
        entry.value = value
        db.commit()
        return entry
    except SQLAlchemyError as e:
        db.rollback()
        raise e

def delete_tool_metadata(db: Session, tool_id: str, key: str) -> bool:
    entry = get_tool_metadata(db, tool_id, key)
    if entry is None:
        return False
    try:
        db.delete(entry)
        db.commit()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        raise e

# Cache CRUD operations
def get_cache_entry(db: Session, namespace: str, key: str) -> Optional[CacheEntry]:
    """Get a live cache entry, expired entries are treated as absent."""
    return db.query(CacheEntry).filter(
        CacheEntry.namespace == namespace,
        CacheEntry.key == key,
        or_(CacheEntry.expires.is_(None), CacheEntry.expires > time.time())
    ).first()

def set_cache_entry(db: Session, namespace: str, key: str, value: Any, expires: Optional[float]) -> CacheEntry:
    try:
        entry = db.query(CacheEntry).filter(
            CacheEntry.namespace == namespace,
            CacheEntry.key == key
        ).first()
        if entry is None:
            entry = CacheEntry(namespace=namespace, key=key)
            db.add(entry)
        entry.value = value
        entry.expires = expires
        db.commit()
        return entry
    except SQLAlchemyError as e:
        db.rollback()
        raise e

def delete_cache_entry(db: Session, namespace: str, key: str) -> bool:
    try:
        deleted = db.query(CacheEntry).filter(
            CacheEntry.namespace == namespace,
            CacheEntry.key == key
        ).delete()
        db.commit()
        return deleted > 0
    except SQLAlchemyError as e:
        db.rollback()
        raise e

def purge_expired(db: Session) -> int:
    """Delete expired cache entries and nonces, returns the number of rows removed."""
    now = time.time()
    try:
        purged = db.query(CacheEntry).filter(
            CacheEntry.expires.isnot(None),
            CacheEntry.expires <= now
        ).delete(synchronize_session=False)
        purged += db.query(LTINonce).filter(LTINonce.expires <= now).delete(synchronize_session=False)
        db.commit()
        return purged
    except SQLAlchemyError as e:
        db.rollback()
        raise e

# LTI Consumer CRUD operations
def get_consumers(db: Session) -> List[LTIConsumer]:
    return db.query(LTIConsumer).order_by(LTIConsumer.id).all()

def get_consumer_by_key(db: Session, consumer_key: str) -> Optional[LTIConsumer]:
    return db.query(LTIConsumer).filter(LTIConsumer.consumer_key == consumer_key).first()

def create_consumer(db: Session, consumer_key: str, name: str, secret: str) -> LTIConsumer:
    try:
        db_consumer = LTIConsumer(
            consumer_key=consumer_key,
            name=name,
            secret=secret,
            enabled=True
        )
        db.add(db_consumer)
        db.commit()
        db.refresh(db_consumer)
        return db_consumer
    except SQLAlchemyError as e:
        db.rollback()
        raise e

# LTI Nonce CRUD operations
def get_nonce(db: Session, consumer_key: str, value: str) -> Optional[LTINonce]:
    return db.query(LTINonce).filter(
        LTINonce.consumer_key == consumer_key,
        LTINonce.value == value
    ).first()

def save_nonce(db: Session, consumer_key: str, value: str, expires: float) -> LTINonce:
    try:
        nonce = get_nonce(db, consumer_key, value)
        if nonce is None:
            nonce = LTINonce(consumer_key=consumer_key, value=value)
            db.add(nonce)
        nonce.expires = expires
        db.commit()
        return nonce
    except SQLAlchemyError as e:
        db.rollback()
        raise e
