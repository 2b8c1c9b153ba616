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

from urllib.parse import urlparse, urlencode
from fastapi import Request
from lti.provider import LaunchRequest
from logging_config import setup_logging

# Configure logging
logger = setup_logging(module_name='lti_utils')


async def get_form_data(request: Request) -> dict:
    """Cache and return form data from request"""
    if not hasattr(request.state, 'form_data'):
        form_data = await request.form()
        request.state.form_data = {k: v for k, v in form_data.items() if isinstance(v, str)}
        logger.debug(f"Retrieved form data: {list(request.state.form_data.keys())}")
    return request.state.form_data

async def get_launch_request(request: Request) -> LaunchRequest:
    """Launch request as signed by the consumer: URL, method, form and headers"""
    return LaunchRequest(
        url=str(request.url),
        method=request.method,
        params=await get_form_data(request),
        headers=dict(request.headers)
    )

def build_redirect_url(base_url: str, params: dict) -> str:
    """Build a proper redirect URL with query parameters"""
    logger.info(f"Building redirect URL - Base URL: {base_url}, Params: {params}")

    # Parse the base URL to ensure it's valid
    parsed = urlparse(base_url)
    if not parsed.scheme or not parsed.netloc:
        logger.error(f"Invalid base URL: {base_url}")
        raise ValueError(f"Invalid base URL: {base_url}")

    # Build query string, filtering out None values
    query = urlencode({k: v for k, v in params.items() if v is not None})
    if not query:
        return base_url

    # Construct final URL
    separator = '&' if '?' in base_url else '?'
    final_url = f"{base_url}{separator}{query}"

    logger.info(f"Built redirect URL: {final_url}")
    return final_url
