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

import time
import uuid
import pytest

from database import crud
from lti.provider import LaunchContext, LaunchRequest, LaunchState, MessageType, ToolProvider
from lti.user import CanvasUser
from utility.exceptions import AuthError, AuthErrorReason

LAUNCH_URL = "https://tool.example.com/lti/launch"
HANDLERS = {
    "base": "https://tool.example.com/app.php",
    "launch": "https://tool.example.com/launch.php",
}


@pytest.fixture
def provider(db):
    provider = ToolProvider(db, HANDLERS)
    provider.create_consumer("Canvas", key="canvas-key", secret="canvas-secret")
    return provider


@pytest.fixture
def signed(sign):
    def _signed(params, key="canvas-key", secret="canvas-secret", **client_kwargs):
        signed_params, headers = sign(LAUNCH_URL, params, key, secret, **client_kwargs)
        return LaunchRequest(url=LAUNCH_URL, params=signed_params, headers=headers)
    return _signed


def _reason(provider, request):
    with pytest.raises(AuthError) as exc_info:
        provider.authenticate(request)
    assert provider.state == LaunchState.REJECTED
    return exc_info.value.reason


def test_is_launching():
    assert ToolProvider.is_launching({"lti_message_type": "basic-lti-launch-request"})
    assert not ToolProvider.is_launching({"lti_message_type": ""})
    assert not ToolProvider.is_launching({})


def test_valid_launch_is_dispatched(provider, signed, launch_params):
    context = provider.authenticate(signed(launch_params))

    assert provider.state == LaunchState.DISPATCHED
    assert context.state == LaunchState.DISPATCHED
    assert context.message_type == MessageType.LAUNCH
    assert context.redirect_url == "https://tool.example.com/launch.php"
    assert context.consumer_key == "canvas-key"
    assert context.consumer_name == "Canvas"
    assert context.resource_id == "resource-42"
    assert context.is_student is True
    assert context.is_content_item is False
    assert ToolProvider.is_authenticated(context)


def test_canvas_settings_have_prefix_stripped(provider, signed, launch_params):
    context = provider.authenticate(signed(launch_params))

    assert isinstance(context.user, CanvasUser)
    assert context.user.canvas == {"user_id": "101", "course_id": "202", "account_id": "303"}
    assert not any(key.startswith("custom_canvas_") for key in context.user.canvas)


def test_unmapped_message_type_goes_to_base(provider, signed, launch_params):
    launch_params["lti_message_type"] = "ConfigureLaunchRequest"
    context = provider.authenticate(signed(launch_params))

    assert context.message_type == MessageType.CONFIGURE
    assert context.redirect_url == "https://tool.example.com/app.php?lti-request=configure"


def test_dashboard_request(provider, signed, launch_params):
    launch_params["lti_message_type"] = "DashboardRequest"
    context = provider.authenticate(signed(launch_params))

    assert context.redirect_url == "https://tool.example.com/app.php?lti-request=dashboard"
    assert context.resource_id is None


def test_content_item_request(provider, signed, launch_params):
    launch_params.update({
        "lti_message_type": "ContentItemSelectionRequest",
        "content_item_return_url": "https://canvas.example.com/return",
        "title": "Pick one",
        "text": "Choose a resource",
        "data": "opaque",
        "accept_presentation_document_targets": "iframe,window",
    })
    context = provider.authenticate(signed(launch_params))

    assert context.message_type == MessageType.CONTENT_ITEM
    assert context.redirect_url == "https://tool.example.com/app.php?lti-request=content-item"
    assert context.is_content_item is True
    assert context.is_student is False
    assert context.resource_id_created is False
    assert str(uuid.UUID(context.resource_id)) == context.resource_id
    assert context.return_url == "https://canvas.example.com/return"
    assert (context.title, context.text, context.data) == ("Pick one", "Choose a resource", "opaque")
    assert context.lti_version == "LTI-1p0"
    assert context.document_targets == "iframe,window"


def test_replayed_nonce_rejected(provider, signed, launch_params):
    request = signed(launch_params)
    provider.authenticate(request)

    assert _reason(provider, request) == AuthErrorReason.REPLAYED_NONCE


def test_unknown_consumer_rejected(provider, signed, launch_params):
    request = signed(launch_params, key="other-key", secret="other-secret")

    assert _reason(provider, request) == AuthErrorReason.UNKNOWN_CONSUMER
    assert crud.get_nonce(provider.db, "other-key", request.params["oauth_nonce"]) is None


def test_bad_signature_rejected(provider, signed, launch_params):
    request = signed(launch_params, secret="wrong-secret")

    assert _reason(provider, request) == AuthErrorReason.INVALID_SIGNATURE


def test_tampered_parameters_rejected(provider, signed, launch_params):
    request = signed(launch_params)
    request.params["roles"] = "Administrator"

    assert _reason(provider, request) == AuthErrorReason.INVALID_SIGNATURE


def test_expired_timestamp_rejected(provider, signed, launch_params):
    request = signed(launch_params, timestamp=str(int(time.time()) - 3600))

    assert _reason(provider, request) == AuthErrorReason.EXPIRED_TIMESTAMP


def test_unsigned_request_rejected(provider, launch_params):
    request = LaunchRequest(url=LAUNCH_URL, params=launch_params)

    assert _reason(provider, request) == AuthErrorReason.INVALID_REQUEST


def test_unsupported_message_type_rejected(provider, signed, launch_params):
    launch_params["lti_message_type"] = "ToolProxyRegistrationRequest"

    assert _reason(provider, signed(launch_params)) == AuthErrorReason.INVALID_REQUEST


def test_reject_resolves_error_handler(provider):
    context = provider.reject(AuthError("bad", AuthErrorReason.INVALID_SIGNATURE))

    assert provider.state == LaunchState.REJECTED
    assert context.state == LaunchState.REJECTED
    assert context.redirect_url == "https://tool.example.com/app.php?lti-request=error"
    assert not ToolProvider.is_authenticated(context)


def test_context_survives_session_round_trip(provider, signed, launch_params):
    context = provider.authenticate(signed(launch_params))

    restored = LaunchContext.from_session(context.to_session())
    assert restored == context
    assert ToolProvider.is_authenticated(restored)
    assert not ToolProvider.is_authenticated(LaunchContext.from_session(None))
