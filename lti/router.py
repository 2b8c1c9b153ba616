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
from typing import List
from fastapi import HTTPException
from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse, RedirectResponse, Response

from constants import (
    CONTENT_TYPE_XML, EXAMPLE_CONSUMER_NAME, LTI_ERROR_MESSAGE_PARAM,
    NOT_AUTHENTICATED_MESSAGE, NOT_LAUNCHING_MESSAGE
)
from database.schemas import ToolConsumer, ToolConsumerCreate
from logging_config import setup_logging
from lti.provider import ToolProvider
from lti.toolbox import Toolbox
from lti.utils import build_redirect_url, get_launch_request
from utility.exceptions import ApiError, AuthError
from utility.session import get_launch_context, get_toolbox_reference, set_launch_context

# Configure logging
logger = setup_logging(module_name='lti')

router = APIRouter()


def get_config_file() -> str:
    config_file = os.getenv("LTI_CONFIG_FILE")
    if not config_file:
        raise ValueError("LTI_CONFIG_FILE environment variable not set")
    return config_file


def _open_toolbox(request: Request, force_recache: bool = False):
    toolbox = Toolbox.from_configuration(
        get_config_file(),
        force_recache=force_recache,
        default_launch_url=str(request.url_for("launch_post"))
    )
    try:
        yield toolbox
    finally:
        toolbox.close()


def get_toolbox(request: Request):
    """Toolbox for the configured tool, closed at the end of the request"""
    yield from _open_toolbox(request)


def get_recached_toolbox(request: Request):
    yield from _open_toolbox(request, force_recache=True)


def get_session_toolbox(request: Request):
    """Toolbox of the tool the current session was launched into"""
    reference = get_toolbox_reference(request)
    if not reference:
        raise HTTPException(status_code=401, detail=NOT_AUTHENTICATED_MESSAGE)
    toolbox = Toolbox.from_persisted_reference(reference)
    try:
        yield toolbox
    finally:
        toolbox.close()


@router.post("/launch", tags=["LTI"])
async def launch_post(request: Request, toolbox: Toolbox = Depends(get_toolbox)):
    """Authenticates an LTI launch and redirects to its handler"""
    launch = await get_launch_request(request)
    if not toolbox.is_launching(launch.params):
        raise HTTPException(status_code=400, detail=NOT_LAUNCHING_MESSAGE)

    try:
        context = toolbox.authenticate(launch)
    except AuthError as e:
        logger.warning(f"Launch rejected: {str(e)}")
        toolbox.log(f"Launch rejected ({e.reason.value}) for consumer {launch.params.get('oauth_consumer_key')}")
        context = toolbox.provider.reject(e, launch.params)
        set_launch_context(request, context)
        redirect_url = build_redirect_url(context.redirect_url, {LTI_ERROR_MESSAGE_PARAM: str(e)})
        return RedirectResponse(redirect_url, status_code=302)

    set_launch_context(request, context, toolbox.persisted_reference())
    logger.info(f"Launch {context.message_type.value} for user {context.user.user_id} redirected to {context.redirect_url}")
    return RedirectResponse(context.redirect_url, status_code=302)


@router.get("/config.xml", tags=["LTI"])
async def configuration_xml(toolbox: Toolbox = Depends(get_toolbox)):
    """Returns the LTI configuration XML for installing the tool in Canvas"""
    return Response(content=toolbox.save_configuration_xml(), media_type=CONTENT_TYPE_XML)


@router.get("/consumers", response_model=List[ToolConsumer], tags=["LTI"])
async def list_consumers(toolbox: Toolbox = Depends(get_toolbox)):
    return toolbox.list_consumers()


@router.post("/consumers", response_model=ToolConsumer, status_code=201, tags=["LTI"])
async def create_consumer(consumer: ToolConsumerCreate, toolbox: Toolbox = Depends(get_toolbox)):
    """Registers a named Tool Consumer, generating its key and secret unless given"""
    if not toolbox.create_consumer(consumer.name, consumer.key, consumer.secret):
        raise HTTPException(status_code=409, detail=f"Consumer {consumer.name} already exists")
    return next(c for c in toolbox.list_consumers() if c.name == consumer.name)


@router.post("/reset", tags=["LTI"])
async def reset(toolbox: Toolbox = Depends(get_recached_toolbox)):
    """Reloads the configuration file and makes sure the example consumer exists"""
    created = toolbox.create_consumer(EXAMPLE_CONSUMER_NAME)
    consumer = next(c for c in toolbox.list_consumers() if c.name == EXAMPLE_CONSUMER_NAME)
    return {
        "tool_id": toolbox.tool_id,
        "created": created,
        "consumer": consumer.model_dump(mode="json"),
    }


@router.get("/profile", tags=["LTI"])
async def profile(request: Request, toolbox: Toolbox = Depends(get_session_toolbox)):
    """Canvas profile of the user who launched the tool"""
    context = get_launch_context(request)
    if not ToolProvider.is_authenticated(context):
        raise HTTPException(status_code=401, detail=NOT_AUTHENTICATED_MESSAGE)

    user_id = context.user.canvas.get("user_id")
    if not user_id:
        raise HTTPException(status_code=400, detail="The launch did not include a Canvas user id")

    try:
        return toolbox.api_get(f"users/{user_id}/profile")
    except ApiError as e:
        logger.error(f"Error fetching profile for Canvas user {user_id}: {str(e)}")
        return JSONResponse(
            status_code=e.status_code or 502,
            content=e.body if e.body is not None else {"detail": str(e)}
        )
