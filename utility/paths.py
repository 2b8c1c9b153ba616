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

import os
from typing import Optional
from urllib.parse import quote


def get_base_url() -> str:
    base_url = os.getenv("LTI_BASE_URL")
    if not base_url:
        raise ValueError("LTI_BASE_URL environment variable not set")
    return base_url.rstrip('/')


def get_document_root() -> str:
    return os.path.abspath(os.getenv("LTI_DOCUMENT_ROOT") or os.getcwd())


def url_from_path(path: str, base_url: Optional[str] = None, document_root: Optional[str] = None) -> str:
    """Map a filesystem path below the document root to its public URL

    Any query string on `path` is carried over unchanged, so handler entries
    like `launch.py?mode=edit` keep their parameters.
    """
    base_url = (base_url or get_base_url()).rstrip('/')
    document_root = os.path.realpath(document_root or get_document_root())

    file_path, separator, query = path.partition('?')
    file_path = os.path.realpath(file_path)

    relative = os.path.relpath(file_path, document_root)
    if relative == os.curdir:
        relative = ''
    elif relative.startswith(os.pardir):
        raise ValueError(f"Path {file_path} is outside the document root {document_root}")

    url_path = '/'.join(quote(part) for part in relative.split(os.sep) if part)
    url = f"{base_url}/{url_path}" if url_path else f"{base_url}/"
    return f"{url}{separator}{query}"
