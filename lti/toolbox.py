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

import logging
from typing import Any, Dict, List, Mapping, Optional, Union
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from constants import CANVAS_ROLES_CACHE_SECONDS
from database.schemas import ToolConsumer
from lti.cache import KeyedCache
from lti.canvas import CanvasAPI
from lti.generator import Generator, LaunchPrivacy
from lti.loader import ToolConfiguration, load_configuration
from lti.metadata import MetadataKey, ToolMetadata
from lti.provider import LaunchContext, LaunchRequest, ToolProvider
from lti.user import CanvasUser, Permission
from logging_config import setup_logging
from utility.exceptions import ApiError, ConfigurationError, ConfigurationErrorReason

logger = setup_logging(module_name='lti_toolbox')


class Toolbox:
    """Everything a tool needs for one request, built from its configuration file

    The toolbox owns the storage session opened by the loader; call
    `close()` when the request is done. The tool provider, Canvas API client
    and XML generator are created on first use.
    """

    def __init__(self, configuration: ToolConfiguration):
        self.configuration = configuration
        self.db = configuration.db
        self.metadata = configuration.metadata
        self.tool_log = configuration.log
        self.cache = KeyedCache(self.db, f"toolbox/{configuration.tool_id}")
        self._provider: Optional[ToolProvider] = None
        self._api: Optional[CanvasAPI] = None
        self._generator: Optional[Generator] = None

    @classmethod
    def from_configuration(cls, path: str, force_recache: bool = False,
                           default_launch_url: Optional[str] = None) -> "Toolbox":
        return cls(load_configuration(path, force_recache, default_launch_url))

    def persisted_reference(self) -> Dict[str, str]:
        """Serializable reference to this toolbox, e.g. for a session"""
        return {'config': self.metadata.get(MetadataKey.TOOL_CONFIG_FILE)}

    @classmethod
    def from_persisted_reference(cls, reference: Mapping[str, str]) -> "Toolbox":
        return cls.from_configuration(reference['config'])

    @property
    def tool_id(self) -> str:
        return self.configuration.tool_id

    def config(self, key: Union[MetadataKey, str], value: Any = None) -> Any:
        """Read a metadata value, or write it when `value` is given"""
        if value is None:
            return self.metadata.get(key)
        self.metadata.set(key, value)
        return value

    def snapshot(self) -> ToolMetadata:
        return self.metadata.snapshot()

    def log(self, message: str, level: int = logging.INFO):
        self.tool_log.log(message, level)

    # LTI

    @property
    def provider(self) -> ToolProvider:
        if self._provider is None:
            metadata = self.snapshot()
            if not metadata.is_dispatchable:
                raise ConfigurationError(
                    f"Tool {self.tool_id} needs an id, a launch URL and handler URLs before it can dispatch launches",
                    ConfigurationErrorReason.MISSING_HANDLERS if not metadata.handler_urls
                    else ConfigurationErrorReason.INVALID_TOOL_PROVIDER
                )
            self._provider = ToolProvider(
                self.db,
                metadata.handler_urls,
                log=self.log
            )
        return self._provider

    def is_launching(self, params: Mapping[str, Any]) -> bool:
        return ToolProvider.is_launching(params)

    def authenticate(self, request: LaunchRequest) -> LaunchContext:
        return self.provider.authenticate(request)

    def create_consumer(self, name: str, key: Optional[str] = None, secret: Optional[str] = None) -> bool:
        return self.provider.create_consumer(name, key, secret)

    def list_consumers(self) -> List[ToolConsumer]:
        return self.provider.list_consumers()

    def allows(self, user: Optional[CanvasUser], permission: Union[Permission, str]) -> bool:
        return user is not None and user.allows(permission)

    # Canvas API

    @property
    def api(self) -> CanvasAPI:
        if self._api is None:
            self._api = CanvasAPI.from_credentials(self.metadata.get(MetadataKey.TOOL_CANVAS_API))
        return self._api

    def api_get(self, path: str, data: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return self.api.get(path, data, headers)

    def api_post(self, path: str, data: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return self.api.post(path, data, headers)

    def api_put(self, path: str, data: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return self.api.put(path, data, headers)

    def api_delete(self, path: str, data: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        return self.api.delete(path, data, headers)

    def canvas_roles(self, user: CanvasUser) -> Dict[str, Any]:
        """Roles defined in the Canvas account of the launch, keyed by role id

        The account comes from the launch's `account_id` or, failing that,
        from the course. Results are cached per account.
        """
        account_id = user.canvas.get('account_id')
        if not account_id:
            course_id = user.canvas.get('course_id')
            if not course_id:
                raise ApiError("Could not determine from which Canvas account roles should be requested.")
            account_id = self.api_get(f"courses/{course_id}")['account_id']

        cache = self.cache.child('canvas_roles')
        roles = cache.get(str(account_id))
        if roles is None:
            response = self.api_get(f"accounts/{account_id}/roles", {'show_inherited': True})
            roles = {str(role['id']): role for role in response}
            cache.set(str(account_id), roles, ttl=CANVAS_ROLES_CACHE_SECONDS)
        return roles

    # Storage

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Union[List[Dict[str, Any]], int]:
        """Run raw SQL against the tool's storage

        Returns the rows as dicts for statements that produce rows, the
        affected row count otherwise.
        """
        try:
            result = self.db.execute(text(sql), params or {})
            if result.returns_rows:
                return [dict(row) for row in result.mappings()]
            self.db.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Query failed for tool {self.tool_id}: {str(e)}")
            raise

    # Configuration XML

    @property
    def generator(self) -> Generator:
        if self._generator is None:
            metadata = self.snapshot()
            self._generator = Generator(
                metadata.name,
                metadata.tool_id,
                metadata.launch_url,
                description=metadata.description,
                icon_url=metadata.icon_url,
                launch_privacy=metadata.launch_privacy or LaunchPrivacy.USER_PROFILE.value,
                domain=metadata.domain,
            )
        return self._generator

    def save_configuration_xml(self) -> str:
        return self.generator.save_xml()

    def close(self):
        if self._api is not None:
            self._api.close()
        self.db.close()
