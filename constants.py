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

TOOL_METADATA_TABLE="tool_metadata"
TOOL_CACHE_TABLE="tool_cache"
LTI_CONSUMERS_TABLE="lti_consumers"
LTI_NONCES_TABLE="lti_nonces"
DEFAULT_LAUNCH_PRIVACY="public"
DEFAULT_LOG_FILE="tool.log"
DEFAULT_MYSQL_DRIVER="mysql+pymysql"
CANVAS_SETTINGS_PREFIX="custom_canvas_"
CANVAS_PLATFORM="canvas.instructure.com"
CANVAS_API_PATH="/api/v1"
LTI_MESSAGE_TYPE_PARAM="lti_message_type"
LTI_REQUEST_PARAM="lti-request"
LTI_ERROR_MESSAGE_PARAM="lti_errormsg"
LTI_SESSION_KEY="lti"
NONCE_LIFETIME_SECONDS=5400
TIMESTAMP_LIFETIME_SECONDS=600
CANVAS_ROLES_CACHE_SECONDS=3600
EXAMPLE_CONSUMER_NAME="Example Consumer"
NOT_AUTHENTICATED_MESSAGE="You are not authenticated."
NOT_LAUNCHING_MESSAGE="Not an LTI launch request"
CONTENT_TYPE_XML="application/xml"
