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

from typing import Any, Dict, Optional
import requests

from constants import CANVAS_API_PATH
from database.schemas import CanvasCredentials
from logging_config import setup_logging
from utility.exceptions import ApiError, ConfigurationError, ConfigurationErrorReason

logger = setup_logging(module_name='canvas_api')

DEFAULT_TIMEOUT = 30


def _parse_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


class CanvasAPI:
    """Minimal Canvas REST API client authenticated with a bearer token

    Paths are relative to `<url>/api/v1`. GET requests returning a list
    follow the `Link: <...>; rel="next"` pagination headers and return the
    concatenated pages.
    """

    def __init__(self, url: str, token: str, session: Optional[requests.Session] = None,
                 timeout: int = DEFAULT_TIMEOUT):
        if not url or not token:
            raise ConfigurationError(
                "Canvas URL and Token required",
                ConfigurationErrorReason.INCORRECT_CANVAS_CREDENTIALS
            )
        self.base_url = f"{url.rstrip('/')}{CANVAS_API_PATH}"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        })

    @classmethod
    def from_credentials(cls, credentials: Optional[Dict[str, Any]], **kwargs) -> "CanvasAPI":
        credentials = CanvasCredentials(**(credentials or {}))
        if not credentials.is_complete:
            raise ConfigurationError(
                "Canvas URL and Token required",
                ConfigurationErrorReason.INCORRECT_CANVAS_CREDENTIALS
            )
        return cls(credentials.url, credentials.token, **kwargs)

    def url_for(self, path: str) -> str:
        if path.startswith(('http://', 'https://')):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, data: Optional[Dict[str, Any]] = None,
                headers: Optional[Dict[str, str]] = None) -> requests.Response:
        url = self.url_for(path)
        kwargs: Dict[str, Any] = {"headers": headers, "timeout": self.timeout}
        if method in ("GET", "DELETE"):
            kwargs["params"] = data
        else:
            kwargs["data"] = data

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error(f"Canvas API {method} {url} failed: {str(e)}")
            raise ApiError(f"Canvas API {method} {path} failed: {str(e)}")

        if not response.ok:
            logger.warning(f"Canvas API {method} {url} returned {response.status_code}")
            raise ApiError(
                f"Canvas API {method} {path} returned {response.status_code}",
                status_code=response.status_code,
                body=_parse_body(response)
            )
        return response

    def get(self, path: str, data: Optional[Dict[str, Any]] = None,
            headers: Optional[Dict[str, str]] = None) -> Any:
        response = self.request("GET", path, data, headers)
        body = _parse_body(response)
        if not isinstance(body, list):
            return body

        items = list(body)
        while 'next' in response.links:
            # the next link carries the query string of the original request
            response = self.request("GET", response.links['next']['url'], headers=headers)
            items.extend(_parse_body(response) or [])
        return items

    def post(self, path: str, data: Optional[Dict[str, Any]] = None,
             headers: Optional[Dict[str, str]] = None) -> Any:
        return _parse_body(self.request("POST", path, data, headers))

    def put(self, path: str, data: Optional[Dict[str, Any]] = None,
            headers: Optional[Dict[str, str]] = None) -> Any:
        return _parse_body(self.request("PUT", path, data, headers))

    def delete(self, path: str, data: Optional[Dict[str, Any]] = None,
               headers: Optional[Dict[str, str]] = None) -> Any:
        return _parse_body(self.request("DELETE", path, data, headers))

    def close(self):
        self.session.close()
