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
from typing import Any, Optional


class ConfigurationErrorReason(str, enum.Enum):
    PARSE_FAILURE = 'parse_failure'
    STORAGE_UNAVAILABLE = 'storage_unavailable'
    MISSING_HANDLERS = 'missing_handlers'
    UNKNOWN_REQUEST_TYPE = 'unknown_request_type'
    MISSING_CANVAS_CREDENTIALS = 'missing_canvas_credentials'
    INCORRECT_CANVAS_CREDENTIALS = 'incorrect_canvas_credentials'
    INVALID_PRIVACY_LEVEL = 'invalid_privacy_level'
    INVALID_OPTION = 'invalid_option'
    INVALID_TOOL_PROVIDER = 'invalid_tool_provider'
    INVALID_PATH = 'invalid_path'


class AuthErrorReason(str, enum.Enum):
    INVALID_SIGNATURE = 'invalid_signature'
    REPLAYED_NONCE = 'replayed_nonce'
    UNKNOWN_CONSUMER = 'unknown_consumer'
    EXPIRED_TIMESTAMP = 'expired_timestamp'
    INVALID_REQUEST = 'invalid_request'


class ToolboxError(Exception):
    """Base exception for all toolbox errors"""
    pass


class ConfigurationError(ToolboxError):
    """Raised when the tool configuration cannot be loaded or is invalid"""

    def __init__(self, message: str, reason: ConfigurationErrorReason):
        super().__init__(message)
        self.reason = reason


class AuthError(ToolboxError):
    """Raised when an LTI launch request fails authentication"""

    def __init__(self, message: str, reason: AuthErrorReason):
        super().__init__(message)
        self.reason = reason


class ApiError(ToolboxError):
    """Raised when a Canvas API call fails

    `body` holds the parsed JSON response when the API returned one, the raw
    text otherwise.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
