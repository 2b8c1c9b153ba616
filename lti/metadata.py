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

import enum
from typing import Any, Dict, Optional
from pydantic import BaseModel
from sqlalchemy.orm import Session

from database import crud
from database.schemas import CanvasCredentials


class MetadataKey(str, enum.Enum):
    """Keys of the persisted tool metadata"""
    TOOL_ID = 'TOOL_ID'
    TOOL_NAME = 'TOOL_NAME'
    TOOL_DESCRIPTION = 'TOOL_DESCRIPTION'
    TOOL_ICON_URL = 'TOOL_ICON_URL'
    TOOL_DOMAIN = 'TOOL_DOMAIN'
    TOOL_LAUNCH_PRIVACY = 'TOOL_LAUNCH_PRIVACY'
    TOOL_LAUNCH_URL = 'TOOL_LAUNCH_URL'
    TOOL_HANDLER_URLS = 'TOOL_HANDLER_URLS'
    TOOL_CONFIG_FILE = 'TOOL_CONFIG_FILE'
    TOOL_LOG = 'TOOL_LOG'
    TOOL_CANVAS_API = 'TOOL_CANVAS_API'


class ToolMetadata(BaseModel):
    """Typed view of the metadata stored for one tool"""
    tool_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    icon_url: Optional[str] = None
    domain: Optional[str] = None
    launch_privacy: Optional[str] = None
    launch_url: Optional[str] = None
    handler_urls: Optional[Dict[str, str]] = None
    config_file: Optional[str] = None
    log: Optional[str] = None
    canvas_api: Optional[CanvasCredentials] = None

    @property
    def is_dispatchable(self) -> bool:
        return bool(self.tool_id) and bool(self.launch_url) and bool(self.handler_urls)


FIELD_KEYS = {
    'tool_id': MetadataKey.TOOL_ID,
    'name': MetadataKey.TOOL_NAME,
    'description': MetadataKey.TOOL_DESCRIPTION,
    'icon_url': MetadataKey.TOOL_ICON_URL,
    'domain': MetadataKey.TOOL_DOMAIN,
    'launch_privacy': MetadataKey.TOOL_LAUNCH_PRIVACY,
    'launch_url': MetadataKey.TOOL_LAUNCH_URL,
    'handler_urls': MetadataKey.TOOL_HANDLER_URLS,
    'config_file': MetadataKey.TOOL_CONFIG_FILE,
    'log': MetadataKey.TOOL_LOG,
    'canvas_api': MetadataKey.TOOL_CANVAS_API,
}


class MetadataStore:
    """Persistent key/value metadata for a single tool

    Every read and write is scoped by the tool id, so several tools can share
    the same metadata table. Values are JSON serializable.
    """

    def __init__(self, db: Session, tool_id: str):
        if not tool_id:
            raise ValueError("A tool id is required to open the metadata store")
        self.db = db
        self.tool_id = tool_id

    def get(self, key: MetadataKey) -> Any:
        entry = crud.get_tool_metadata(self.db, self.tool_id, MetadataKey(key).value)
        return None if entry is None else entry.value

    def set(self, key: MetadataKey, value: Any):
        crud.set_tool_metadata(self.db, self.tool_id, MetadataKey(key).value, value)

    def clear(self, key: MetadataKey) -> bool:
        return crud.delete_tool_metadata(self.db, self.tool_id, MetadataKey(key).value)

    def is_empty(self, key: MetadataKey) -> bool:
        return not self.get(key)

    def __contains__(self, key: MetadataKey) -> bool:
        return crud.get_tool_metadata(self.db, self.tool_id, MetadataKey(key).value) is not None

    def snapshot(self) -> ToolMetadata:
        values = crud.list_tool_metadata(self.db, self.tool_id)
        return ToolMetadata(**{
            field: values.get(key.value)
            for field, key in FIELD_KEYS.items()
        })
