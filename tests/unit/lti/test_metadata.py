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
import pytest

from database import crud
from lti.cache import KeyedCache
from lti.metadata import MetadataKey, MetadataStore


def test_set_and_get_round_trip_structured_values(db):
    store = MetadataStore(db, "tool-a")
    store.set(MetadataKey.TOOL_HANDLER_URLS, {"base": "https://tool.example.com/app.php"})

    assert store.get(MetadataKey.TOOL_HANDLER_URLS) == {"base": "https://tool.example.com/app.php"}
    assert MetadataKey.TOOL_HANDLER_URLS in store
    assert MetadataKey.TOOL_NAME not in store
    assert store.get(MetadataKey.TOOL_NAME) is None


def test_set_overwrites_single_row(db):
    store = MetadataStore(db, "tool-a")
    store.set(MetadataKey.TOOL_NAME, "First")
    store.set(MetadataKey.TOOL_NAME, "Second")

    assert store.get(MetadataKey.TOOL_NAME) == "Second"
    assert crud.list_tool_metadata(db, "tool-a") == {"TOOL_NAME": "Second"}


def test_stores_are_scoped_by_tool_id(db):
    first = MetadataStore(db, "tool-a")
    second = MetadataStore(db, "tool-b")
    first.set(MetadataKey.TOOL_NAME, "A")

    assert second.get(MetadataKey.TOOL_NAME) is None
    second.set(MetadataKey.TOOL_NAME, "B")
    assert first.get(MetadataKey.TOOL_NAME) == "A"


def test_clear_reports_whether_key_existed(db):
    store = MetadataStore(db, "tool-a")
    store.set(MetadataKey.TOOL_DOMAIN, "example.com")

    assert store.clear(MetadataKey.TOOL_DOMAIN) is True
    assert store.clear(MetadataKey.TOOL_DOMAIN) is False
    assert store.is_empty(MetadataKey.TOOL_DOMAIN)


def test_snapshot_is_typed(db):
    store = MetadataStore(db, "tool-a")
    store.set(MetadataKey.TOOL_ID, "tool-a")
    store.set(MetadataKey.TOOL_LAUNCH_URL, "https://tool.example.com/launch.php")
    store.set(MetadataKey.TOOL_CANVAS_API, {"url": "https://canvas.example.com", "token": "t"})

    snapshot = store.snapshot()
    assert snapshot.tool_id == "tool-a"
    assert snapshot.canvas_api.is_complete
    assert not snapshot.is_dispatchable

    store.set(MetadataKey.TOOL_HANDLER_URLS, {"base": "https://tool.example.com/app.php"})
    assert store.snapshot().is_dispatchable


def test_tool_id_required(db):
    with pytest.raises(ValueError):
        MetadataStore(db, "")


def test_keyed_cache_expiry_and_children(db):
    cache = KeyedCache(db, "toolbox/tool-a")
    roles = cache.child("canvas_roles")
    roles.set("303", {"1": {"id": 1, "label": "Teacher"}}, ttl=60)
    cache.set("303", "parent value")

    assert roles.get("303") == {"1": {"id": 1, "label": "Teacher"}}
    assert cache.get("303") == "parent value"

    crud.set_cache_entry(db, "toolbox/tool-a/canvas_roles", "stale", "old", time.time() - 1)
    assert roles.get("stale", default="missing") == "missing"
    assert roles.purge_expired() == 1
    assert roles.delete("303") is True
    assert roles.get("303") is None
