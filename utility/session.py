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
from typing import Dict, Optional
from dotenv import load_dotenv
from fastapi import Request

from constants import LTI_SESSION_KEY
from lti.provider import LaunchContext

load_dotenv()

TOOLBOX_SESSION_KEY = "toolbox"


def get_session_secret_key() -> str:
    secret = os.getenv("LTI_SESSION_SECRET")
    if not secret:
        raise ValueError("LTI_SESSION_SECRET environment variable not set")
    return secret

def get_launch_context(request: Request) -> LaunchContext:
    return LaunchContext.from_session(request.session.get(LTI_SESSION_KEY))

def set_launch_context(request: Request, context: LaunchContext, toolbox_reference: Optional[Dict[str, str]] = None):
    request.session[LTI_SESSION_KEY] = context.to_session()
    if toolbox_reference is not None:
        request.session[TOOLBOX_SESSION_KEY] = toolbox_reference

def get_toolbox_reference(request: Request) -> Optional[Dict[str, str]]:
    return request.session.get(TOOLBOX_SESSION_KEY)
