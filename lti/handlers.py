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
from typing import Dict, Mapping

from constants import LTI_REQUEST_PARAM
from utility.exceptions import ConfigurationError, ConfigurationErrorReason


class RequestType(str, enum.Enum):
    BASE = 'base'
    LAUNCH = 'launch'
    DASHBOARD = 'dashboard'
    CONTENT_ITEM = 'content-item'
    CONFIGURE = 'configure'
    ERROR = 'error'


class HandlerURLMap:
    """Request type to handler URL mapping

    The base handler always resolves: when it is not configured it is the
    first handler's URL without its query string. Request types without a
    handler of their own are sent to the base handler with an `lti-request`
    query parameter naming the request type.
    """

    def __init__(self, handlers: Mapping[str, str]):
        if not handlers:
            raise ConfigurationError(
                "At least one handler/URL pair must be specified",
                ConfigurationErrorReason.MISSING_HANDLERS
            )

        self._handlers: Dict[RequestType, str] = {}
        for request, url in handlers.items():
            try:
                request_type = RequestType(str(request).lower())
            except ValueError:
                raise ConfigurationError(
                    f'Unknown LTI request type "{request}".',
                    ConfigurationErrorReason.UNKNOWN_REQUEST_TYPE
                )
            self._handlers[request_type] = url

        if not self._handlers.get(RequestType.BASE):
            first_url = next(iter(handlers.values()))
            self._handlers[RequestType.BASE] = first_url.split('?', 1)[0]

    @property
    def base(self) -> str:
        return self._handlers[RequestType.BASE]

    def resolve_redirect(self, request) -> str:
        request_type = RequestType(str(getattr(request, 'value', request)).lower())
        url = self._handlers.get(request_type)
        if url:
            return url
        return f"{self.base}?{LTI_REQUEST_PARAM}={request_type.value}"

    def to_dict(self) -> Dict[str, str]:
        return {request_type.value: url for request_type, url in self._handlers.items()}
