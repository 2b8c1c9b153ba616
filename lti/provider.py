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
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode
from oauthlib import oauth1
from pydantic import BaseModel
from sqlalchemy.orm import Session

from constants import LTI_MESSAGE_TYPE_PARAM, NONCE_LIFETIME_SECONDS, TIMESTAMP_LIFETIME_SECONDS
from database import crud
from database.schemas import ToolConsumer
from lti.consumers import ConsumerRegistry
from lti.handlers import HandlerURLMap, RequestType
from lti.user import CanvasUser, LtiUser
from logging_config import setup_logging
from utility.exceptions import AuthError, AuthErrorReason

logger = setup_logging(module_name='lti_provider')

CONTENT_TYPE_FORM_URLENCODED = 'application/x-www-form-urlencoded'


class MessageType(str, enum.Enum):
    LAUNCH = RequestType.LAUNCH.value
    DASHBOARD = RequestType.DASHBOARD.value
    CONFIGURE = RequestType.CONFIGURE.value
    CONTENT_ITEM = RequestType.CONTENT_ITEM.value
    ERROR = RequestType.ERROR.value


#: lti_message_type values accepted on launch
LTI_MESSAGE_TYPES = {
    'basic-lti-launch-request': MessageType.LAUNCH,
    'DashboardRequest': MessageType.DASHBOARD,
    'ConfigureLaunchRequest': MessageType.CONFIGURE,
    'ContentItemSelectionRequest': MessageType.CONTENT_ITEM,
}


class LaunchState(str, enum.Enum):
    UNAUTHENTICATED = 'unauthenticated'
    VALIDATING = 'validating'
    AUTHENTICATED = 'authenticated'
    DISPATCHED = 'dispatched'
    REJECTED = 'rejected'


@dataclass
class LaunchRequest:
    """The parts of an inbound HTTP request needed to validate a launch"""
    url: str
    params: Dict[str, str]
    method: str = 'POST'
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def body(self) -> str:
        return urlencode(self.params)

    @property
    def signed_headers(self) -> Dict[str, str]:
        # the body is re-encoded from the parsed form, so it is always form encoded
        headers = {'Content-Type': CONTENT_TYPE_FORM_URLENCODED}
        for name, value in self.headers.items():
            if name.lower() == 'authorization':
                headers['Authorization'] = value
        return headers

    @property
    def referrer(self) -> Optional[str]:
        for name, value in self.headers.items():
            if name.lower() == 'referer':
                return value
        return None


class LaunchContext(BaseModel):
    """Per-request result of a launch, kept in the session"""
    state: LaunchState = LaunchState.UNAUTHENTICATED
    message_type: Optional[MessageType] = None
    consumer_key: Optional[str] = None
    consumer_name: Optional[str] = None
    user: Optional[CanvasUser] = None
    resource_link_id: Optional[str] = None
    resource_id: Optional[str] = None
    resource_id_created: bool = True
    is_student: bool = False
    is_content_item: bool = False
    lti_version: Optional[str] = None
    return_url: Optional[str] = None
    title: Optional[str] = None
    text: Optional[str] = None
    data: Optional[str] = None
    document_targets: Optional[str] = None
    http_referrer: Optional[str] = None
    redirect_url: Optional[str] = None
    error: Optional[str] = None

    def to_session(self) -> Dict[str, Any]:
        return self.model_dump(mode='json')

    @classmethod
    def from_session(cls, data: Optional[Mapping[str, Any]]) -> "LaunchContext":
        if not data:
            return cls()
        return cls.model_validate(dict(data))


class LaunchValidator(oauth1.RequestValidator):
    """oauthlib request validator backed by the consumer and nonce tables

    Records why a validation failed so the provider can report the reason.
    """

    enforce_ssl = False
    timestamp_lifetime = TIMESTAMP_LIFETIME_SECONDS
    dummy_client = 'dummy_6c877d7e0a8d52d3ea51155c0ce5bd75ceaf7bdd1d2041f9fb3703a207278ab9'
    dummy_secret = 'secret'

    def __init__(self, db: Session, consumers: ConsumerRegistry):
        super().__init__()
        self.db = db
        self.consumers = consumers
        self.reset()

    def reset(self):
        self.failure: Optional[AuthErrorReason] = None
        self.signature_checked = False

    def _fail(self, reason: AuthErrorReason) -> bool:
        if self.failure is None:
            self.failure = reason
        return False

    def check_client_key(self, client_key):
        return len(client_key) > 0

    def check_nonce(self, nonce):
        return len(nonce) > 0

    def validate_client_key(self, client_key, request):
        if self.consumers.lookup(client_key) is None:
            return self._fail(AuthErrorReason.UNKNOWN_CONSUMER)
        return True

    def validate_timestamp_and_nonce(self, client_key, timestamp, nonce, request,
                                     request_token=None, access_token=None):
        now = time.time()
        seen = crud.get_nonce(self.db, client_key, nonce)
        if seen is not None and seen.expires > now:
            return self._fail(AuthErrorReason.REPLAYED_NONCE)
        # unknown consumers are rejected later by validate_client_key
        if self.consumers.lookup(client_key) is None:
            return True
        crud.save_nonce(self.db, client_key, nonce, now + NONCE_LIFETIME_SECONDS)
        return True

    def get_client_secret(self, client_key, request):
        self.signature_checked = True
        consumer = self.consumers.lookup(client_key)
        if consumer is None:
            return self.dummy_secret
        return consumer.secret


def _timestamp_expired(params: Mapping[str, str]) -> bool:
    try:
        timestamp = int(params.get('oauth_timestamp', ''))
    except ValueError:
        return False
    return abs(time.time() - timestamp) > TIMESTAMP_LIFETIME_SECONDS


class ToolProvider:
    """Authenticates LTI launches and picks the handler to redirect to

    The provider moves from unauthenticated through validating to
    authenticated and then dispatched, or ends rejected. Each message type
    is dispatched through an explicit table of handler functions.
    """

    def __init__(self, db: Session, handlers: Mapping[str, str],
                 consumers: Optional[ConsumerRegistry] = None,
                 log: Optional[Callable[[str], None]] = None):
        self.db = db
        self.handlers = HandlerURLMap(handlers)
        self.consumers = consumers or ConsumerRegistry(db, log)
        self.validator = LaunchValidator(db, self.consumers)
        self.endpoint = oauth1.SignatureOnlyEndpoint(self.validator)
        self.state = LaunchState.UNAUTHENTICATED
        self._log = log or logger.info
        self._dispatch: Dict[MessageType, Callable[[LaunchContext, Mapping[str, str]], None]] = {
            MessageType.LAUNCH: self.on_launch,
            MessageType.DASHBOARD: self.on_dashboard,
            MessageType.CONFIGURE: self.on_configure,
            MessageType.CONTENT_ITEM: self.on_content_item,
            MessageType.ERROR: self.on_error,
        }

    @staticmethod
    def is_launching(params: Mapping[str, Any]) -> bool:
        return bool(params.get(LTI_MESSAGE_TYPE_PARAM))

    @staticmethod
    def is_authenticated(context: Optional[LaunchContext]) -> bool:
        if context is None:
            return False
        return (context.state in (LaunchState.AUTHENTICATED, LaunchState.DISPATCHED)
                and isinstance(context.user, CanvasUser))

    @staticmethod
    def classify(params: Mapping[str, Any]) -> MessageType:
        message_type = params.get(LTI_MESSAGE_TYPE_PARAM, '')
        if message_type not in LTI_MESSAGE_TYPES:
            raise AuthError(
                f"Unsupported lti_message_type: {message_type}",
                AuthErrorReason.INVALID_REQUEST
            )
        return LTI_MESSAGE_TYPES[message_type]

    def resolve_redirect(self, request_type) -> str:
        return self.handlers.resolve_redirect(request_type)

    def create_consumer(self, name: str, key: Optional[str] = None, secret: Optional[str] = None) -> bool:
        return self.consumers.create_consumer(name, key, secret)

    def list_consumers(self) -> List[ToolConsumer]:
        return self.consumers.list_consumers()

    def validate_launch(self, request: LaunchRequest) -> ToolConsumer:
        """Check the OAuth signature, timestamp and nonce of a launch

        Returns the consumer that signed the request or raises AuthError.
        """
        self.validator.reset()
        valid, _ = self.endpoint.validate_request(
            request.url, request.method, request.body, request.signed_headers
        )
        if valid:
            consumer = self.consumers.lookup(request.params.get('oauth_consumer_key', ''))
            if consumer is not None:
                return consumer
            reason = AuthErrorReason.UNKNOWN_CONSUMER
        elif self.validator.failure is not None:
            reason = self.validator.failure
        elif self.validator.signature_checked:
            reason = AuthErrorReason.INVALID_SIGNATURE
        elif _timestamp_expired(request.params):
            reason = AuthErrorReason.EXPIRED_TIMESTAMP
        else:
            reason = AuthErrorReason.INVALID_REQUEST

        logger.warning(f"LTI launch rejected ({reason.value}) for consumer key {request.params.get('oauth_consumer_key')}")
        raise AuthError(f"LTI launch failed authentication: {reason.value}", reason)

    def authenticate(self, request: LaunchRequest) -> LaunchContext:
        """Validate a launch and dispatch it to its message type handler"""
        self.state = LaunchState.VALIDATING
        try:
            consumer = self.validate_launch(request)
            message_type = self.classify(request.params)
        except AuthError:
            self.state = LaunchState.REJECTED
            raise

        params = request.params
        context = LaunchContext(
            state=LaunchState.AUTHENTICATED,
            message_type=message_type,
            consumer_key=consumer.consumer_key,
            consumer_name=consumer.name,
            user=CanvasUser.from_user(LtiUser.from_launch(params), params),
            resource_link_id=params.get('resource_link_id'),
            lti_version=params.get('lti_version'),
            http_referrer=request.referrer,
        )
        self.state = LaunchState.AUTHENTICATED

        self._dispatch[message_type](context, params)
        context.state = LaunchState.DISPATCHED
        self.state = LaunchState.DISPATCHED
        self._log(f"Dispatched {message_type.value} request from {consumer.name} to {context.redirect_url}")
        return context

    def reject(self, error: AuthError, params: Optional[Mapping[str, str]] = None) -> LaunchContext:
        """Context for a failed launch, redirecting to the error handler"""
        context = LaunchContext(state=LaunchState.REJECTED, message_type=MessageType.ERROR, error=str(error))
        self._dispatch[MessageType.ERROR](context, params or {})
        return context

    def on_launch(self, context: LaunchContext, params: Mapping[str, str]):
        context.resource_id = context.resource_link_id
        context.is_student = context.user.is_learner()
        context.is_content_item = False
        context.redirect_url = self.resolve_redirect(MessageType.LAUNCH)

    def on_dashboard(self, context: LaunchContext, params: Mapping[str, str]):
        context.redirect_url = self.resolve_redirect(MessageType.DASHBOARD)

    def on_configure(self, context: LaunchContext, params: Mapping[str, str]):
        context.redirect_url = self.resolve_redirect(MessageType.CONFIGURE)

    def on_content_item(self, context: LaunchContext, params: Mapping[str, str]):
        # the resource is created once the content item selection completes
        context.resource_id = str(uuid.uuid4())
        context.resource_id_created = False
        context.is_student = False
        context.is_content_item = True
        context.return_url = params.get('content_item_return_url')
        context.title = params.get('title')
        context.text = params.get('text')
        context.data = params.get('data')
        context.document_targets = params.get('accept_presentation_document_targets')
        context.redirect_url = self.resolve_redirect(MessageType.CONTENT_ITEM)

    def on_error(self, context: LaunchContext, params: Mapping[str, str]):
        self.state = LaunchState.REJECTED
        context.state = LaunchState.REJECTED
        context.redirect_url = self.resolve_redirect(MessageType.ERROR)
