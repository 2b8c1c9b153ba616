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

import hashlib
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlparse
from xml.etree.ElementTree import Element
from defusedxml import DefusedXmlException
from defusedxml.ElementTree import ParseError, parse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from constants import DEFAULT_LAUNCH_PRIVACY, DEFAULT_LOG_FILE
from database.db import build_database_url, init_storage
from lti.handlers import HandlerURLMap
from lti.metadata import MetadataKey, MetadataStore
from logging_config import ToolLog, setup_logging
from utility.exceptions import ConfigurationError, ConfigurationErrorReason
from utility.paths import url_from_path

logger = setup_logging(module_name='lti_loader')

IDENTITY_KEYS = (MetadataKey.TOOL_ID, MetadataKey.TOOL_LAUNCH_URL, MetadataKey.TOOL_CONFIG_FILE)


@dataclass
class ToolConfiguration:
    """Result of loading a tool configuration file"""
    config_file: str
    tool_id: str
    db: Session
    metadata: MetadataStore
    log: ToolLog

    @property
    def config_dir(self) -> str:
        return os.path.dirname(self.config_file)


def parse_config(path: str) -> Element:
    try:
        root = parse(path).getroot()
    except (OSError, ParseError, DefusedXmlException) as e:
        raise ConfigurationError(
            f"Could not read configuration file {path}: {e}",
            ConfigurationErrorReason.PARSE_FAILURE
        )
    if root.tag != 'config':
        raise ConfigurationError(
            f"Configuration file {path} must have a <config> root element, found <{root.tag}>",
            ConfigurationErrorReason.PARSE_FAILURE
        )
    return root


def _text(root: Element, path: str) -> Optional[str]:
    node = root.find(path)
    if node is None or node.text is None:
        return None
    return node.text.strip() or None


def _children(root: Element, path: str) -> Dict[str, str]:
    """Child elements of `path` as a tag to text mapping, empty entries skipped"""
    node = root.find(path)
    if node is None:
        return {}
    return {
        child.tag: child.text.strip()
        for child in node
        if child.text and child.text.strip()
    }


def derive_tool_id(path: str) -> str:
    """`<directory name>_<md5 of directory name and file contents>`

    Only the base name of the directory is hashed, so a tool keeps its id
    when the directory is moved or redeployed elsewhere.
    """
    dirname = os.path.basename(os.path.dirname(os.path.abspath(path)))
    with open(path, 'rb') as f:
        contents = f.read()
    digest = hashlib.md5(dirname.encode('utf-8') + contents).hexdigest()
    return f"{dirname}_{digest}"


def _url_for(path: str) -> str:
    try:
        return url_from_path(path)
    except ValueError as e:
        raise ConfigurationError(str(e), ConfigurationErrorReason.INVALID_PATH)


def _resolve_url(config_dir: str, path: str) -> str:
    if urlparse(path).scheme:
        return path
    return _url_for(os.path.join(config_dir, path))


def connect_storage(root: Element) -> Session:
    params = _children(root, 'mysql')
    try:
        return init_storage(build_database_url(params))
    except SQLAlchemyError as e:
        raise ConfigurationError(
            f"Could not connect to the storage engine: {e}",
            ConfigurationErrorReason.STORAGE_UNAVAILABLE
        )


def _refresh_identity(root: Element, store: MetadataStore, tool_id: str, config_file: str,
                      default_launch_url: Optional[str]):
    config_dir = os.path.dirname(config_file)

    # URLs are resolved before anything is written so a bad path leaves the group untouched
    icon = _text(root, 'tool/icon')
    if icon:
        icon_path = os.path.join(config_dir, icon)
        icon = _url_for(icon_path) if os.path.exists(icon_path) else icon

    authenticate = _text(root, 'tool/authenticate')
    if authenticate:
        launch_url = _resolve_url(config_dir, authenticate)
    elif default_launch_url:
        launch_url = default_launch_url
    else:
        launch_url = _url_for(os.path.abspath(sys.argv[0]))

    store.set(MetadataKey.TOOL_ID, tool_id)
    store.set(MetadataKey.TOOL_NAME, _text(root, 'tool/name') or tool_id)
    store.set(MetadataKey.TOOL_CONFIG_FILE, config_file)

    description = _text(root, 'tool/description')
    if description:
        store.set(MetadataKey.TOOL_DESCRIPTION, description)
    else:
        store.clear(MetadataKey.TOOL_DESCRIPTION)

    if icon:
        store.set(MetadataKey.TOOL_ICON_URL, icon)
    else:
        store.clear(MetadataKey.TOOL_ICON_URL)

    store.set(MetadataKey.TOOL_LAUNCH_PRIVACY, _text(root, 'tool/launch-privacy') or DEFAULT_LAUNCH_PRIVACY)

    domain = _text(root, 'tool/domain')
    if domain:
        store.set(MetadataKey.TOOL_DOMAIN, domain)
    else:
        store.clear(MetadataKey.TOOL_DOMAIN)

    store.set(MetadataKey.TOOL_LAUNCH_URL, launch_url)


def _refresh_log(root: Element, store: MetadataStore, config_dir: str) -> str:
    log_path = Path(config_dir) / (_text(root, 'tool/log') or DEFAULT_LOG_FILE)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path.touch(exist_ok=True)
    except OSError as e:
        raise ConfigurationError(
            f"Could not create log file {log_path}: {e}",
            ConfigurationErrorReason.INVALID_PATH
        )
    log_file = os.path.realpath(log_path)
    store.set(MetadataKey.TOOL_LOG, log_file)
    return log_file


def _refresh_handlers(root: Element, store: MetadataStore, config_dir: str):
    handlers = _children(root, 'tool/handlers')
    if not handlers:
        raise ConfigurationError(
            "At least one handler/URL pair must be specified",
            ConfigurationErrorReason.MISSING_HANDLERS
        )
    resolved = HandlerURLMap({
        request: _resolve_url(config_dir, path)
        for request, path in handlers.items()
    })
    store.set(MetadataKey.TOOL_HANDLER_URLS, resolved.to_dict())


def _refresh_canvas_api(root: Element, store: MetadataStore):
    credentials = _children(root, 'canvas')
    if not credentials:
        raise ConfigurationError(
            "Canvas API credentials must be provided",
            ConfigurationErrorReason.MISSING_CANVAS_CREDENTIALS
        )
    store.set(MetadataKey.TOOL_CANVAS_API, credentials)


def load_configuration(path: str, force_recache: bool = False,
                       default_launch_url: Optional[str] = None) -> ToolConfiguration:
    """Load a tool configuration file into the metadata store

    Each metadata group (identity, log, handlers, Canvas API) is refreshed
    from the file when `force_recache` is set or when the key defining the
    group is missing from the store; otherwise the stored values are used
    as-is and nothing is written. Messages logged before the tool log file is
    known are buffered and flushed once it is.
    """
    root = parse_config(path)
    config_file = os.path.realpath(path)
    db = connect_storage(root)

    tool_id = _text(root, 'tool/id')
    generated = tool_id is None
    if generated:
        tool_id = derive_tool_id(config_file)

    tool_log = ToolLog(tool_id)
    if force_recache:
        tool_log.log(f"Resetting LTI configuration from {config_file}")
    if generated:
        tool_log.log(f"    Automatically generated ID {tool_id}")

    store = MetadataStore(db, tool_id)

    try:
        if force_recache or any(store.is_empty(key) for key in IDENTITY_KEYS):
            _refresh_identity(root, store, tool_id, config_file, default_launch_url)
            tool_log.log("    Tool metadata configured")
        config_dir = os.path.dirname(store.get(MetadataKey.TOOL_CONFIG_FILE))

        log_file = store.get(MetadataKey.TOOL_LOG)
        if force_recache or not log_file:
            log_file = _refresh_log(root, store, config_dir)
        tool_log.go_live(log_file)

        if force_recache or store.is_empty(MetadataKey.TOOL_HANDLER_URLS):
            _refresh_handlers(root, store, config_dir)
            tool_log.log("    Tool provider handler URLs configured")

        if force_recache or store.is_empty(MetadataKey.TOOL_CANVAS_API):
            _refresh_canvas_api(root, store)
            tool_log.log("    Canvas API credentials configured")
    except Exception:
        db.close()
        raise

    logger.debug(f"Loaded configuration for tool {tool_id} from {config_file}")
    return ToolConfiguration(
        config_file=config_file,
        tool_id=tool_id,
        db=db,
        metadata=store,
        log=tool_log,
    )
