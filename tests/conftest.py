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

"""
Global pytest configuration and fixtures for the LTI toolbox tests.

This module sets up the test environment (environment variables read at
import time), SQLite storage in a temporary directory and helpers to write
tool configuration files and sign LTI launches.
"""

import os
import pytest
from typing import Dict, Generator, Optional
from urllib.parse import parse_qsl

# Set up environment variables immediately when module is imported
# This prevents import-time errors from modules that check environment variables
def setup_immediate_env():
    """Set up environment variables immediately to prevent import-time errors."""
    test_env_vars = {
        # Public URLs
        "LTI_BASE_URL": "https://tool.example.com",

        # Session and Security
        "LTI_SESSION_SECRET": "test-session-secret",
        "LTI_SESSION_HTTPS_ONLY": "false",

        # Logging
        "LOG_LEVEL": "DEBUG",
    }

    for key, value in test_env_vars.items():
        if key not in os.environ:
            os.environ[key] = value


# Call immediately when module is imported
setup_immediate_env()

from oauthlib import oauth1  # noqa: E402

from database.db import dispose_engines, init_storage  # noqa: E402

DEFAULT_HANDLERS = {"base": "app.php"}
DEFAULT_CANVAS = {"url": "https://canvas.example.com", "token": "test-canvas-token"}


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """
    Global fixture that ensures the test environment is properly set up.

    This fixture runs automatically for all tests and ensures that all required
    environment variables remain set throughout the test session.
    """
    # Store original environment to restore later
    original_env = dict(os.environ)

    try:
        setup_immediate_env()
        yield
    finally:
        os.environ.clear()
        os.environ.update(original_env)


@pytest.fixture(autouse=True)
def release_engines() -> Generator[None, None, None]:
    yield
    dispose_engines()


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path}/tool.db"


@pytest.fixture
def db(sqlite_url):
    session = init_storage(sqlite_url)
    yield session
    session.close()


def _element(tag: str, value) -> str:
    if isinstance(value, dict):
        children = "".join(_element(key, child) for key, child in value.items())
        return f"<{tag}>{children}</{tag}>"
    return f"<{tag}>{value}</{tag}>"


@pytest.fixture
def write_config(tmp_path, sqlite_url, monkeypatch):
    """Factory writing a tool configuration file below the document root"""
    monkeypatch.setenv("LTI_DOCUMENT_ROOT", str(tmp_path))

    def _write(tool: Optional[Dict] = None, handlers: Optional[Dict] = None,
               canvas: Optional[Dict] = None, mysql: Optional[Dict] = None,
               directory: str = "tool", filename: str = "config.xml") -> str:
        tool = dict({"name": "Example Tool", "authenticate": "launch.php"} if tool is None else tool)
        tool["handlers"] = DEFAULT_HANDLERS if handlers is None else handlers
        sections = [
            _element("tool", tool),
            _element("mysql", {"url": sqlite_url} if mysql is None else mysql),
            _element("canvas", DEFAULT_CANVAS if canvas is None else canvas),
        ]
        config_dir = tmp_path / directory
        config_dir.mkdir(parents=True, exist_ok=True)
        path = config_dir / filename
        path.write_text(f'<?xml version="1.0" encoding="UTF-8"?>\n<config>{"".join(sections)}</config>\n')
        return str(path)

    return _write


def sign_launch(url: str, params: Dict[str, str], key: str, secret: str, **client_kwargs):
    """Sign launch parameters the way a Tool Consumer does, returns (params, headers)"""
    client = oauth1.Client(
        key,
        client_secret=secret,
        signature_type=oauth1.SIGNATURE_TYPE_BODY,
        **client_kwargs
    )
    _, headers, body = client.sign(
        url,
        http_method="POST",
        body=params,
        headers={"Content-Type": "application/x-www-form-urlencoded"}
    )
    return dict(parse_qsl(body)), headers


@pytest.fixture
def launch_params() -> Dict[str, str]:
    return {
        "lti_message_type": "basic-lti-launch-request",
        "lti_version": "LTI-1p0",
        "resource_link_id": "resource-42",
        "user_id": "lti-user-1",
        "roles": "Learner",
        "lis_person_name_full": "Ada Lovelace",
        "lis_person_contact_email_primary": "ada@example.com",
        "custom_canvas_user_id": "101",
        "custom_canvas_course_id": "202",
        "custom_canvas_account_id": "303",
    }


@pytest.fixture
def sign():
    return sign_launch
