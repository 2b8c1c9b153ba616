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
from typing import Any, Optional
from sqlalchemy.orm import Session

from database import crud


class KeyedCache:
    """Database backed cache with per-entry expiry, namespaced by a prefix

    Child caches share the storage and extend the namespace, e.g.
    `cache.child("roles")` stores under `<namespace>/roles`.
    """

    def __init__(self, db: Session, namespace: str, default_ttl: Optional[int] = None):
        self.db = db
        self.namespace = namespace
        self.default_ttl = default_ttl

    def child(self, name: str) -> "KeyedCache":
        return KeyedCache(self.db, f"{self.namespace}/{name}", self.default_ttl)

    def get(self, key: str, default: Any = None) -> Any:
        entry = crud.get_cache_entry(self.db, self.namespace, key)
        return default if entry is None else entry.value

    def set(self, key: str, value: Any, ttl: Optional[int] = None):
        ttl = self.default_ttl if ttl is None else ttl
        expires = time.time() + ttl if ttl else None
        crud.set_cache_entry(self.db, self.namespace, key, value, expires)

    def delete(self, key: str) -> bool:
        return crud.delete_cache_entry(self.db, self.namespace, key)

    def purge_expired(self) -> int:
        return crud.purge_expired(self.db)
