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
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from logging_config import setup_logging
from database.db import dispose_engines
from lti.loader import load_configuration
from lti.router import router as lti_router
from utility.exceptions import ConfigurationError
from utility.session import get_session_secret_key

load_dotenv()

# Configure logging first
logger = setup_logging(module_name='main')

# Canvas embeds tools in an iframe, so the session cookie must be allowed cross-site
SESSION_HTTPS_ONLY = os.getenv("LTI_SESSION_HTTPS_ONLY", "true").lower() != "false"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application lifespan...")
    config_file = os.getenv("LTI_CONFIG_FILE")
    if config_file:
        # populate the metadata store before the first launch arrives
        configuration = load_configuration(config_file)
        configuration.db.close()
        logger.info(f"Tool {configuration.tool_id} configured from {configuration.config_file}")
    else:
        logger.warning("LTI_CONFIG_FILE not set, configuration will be loaded on first request")

    logger.info("Application startup completed, yielding control...")
    yield

    logger.info("Application shutdown initiated...")
    dispose_engines()


app = FastAPI(
    lifespan=lifespan,
    openapi_tags=[
        {"name": "LTI", "description": "LTI integration"},
    ]
)

app.add_middleware(
    SessionMiddleware,
    secret_key=get_session_secret_key(),
    max_age=3600,
    same_site="none" if SESSION_HTTPS_ONLY else "lax",
    https_only=SESSION_HTTPS_ONLY,
)

app.include_router(lti_router, prefix="/lti", tags=["LTI"])


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error ({exc.reason.value}): {str(exc)}")
    return JSONResponse(status_code=500, content={"detail": str(exc), "reason": exc.reason.value})


# Add middleware for request logging
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Request: {request.method} {request.url}")
    try:
        response = await call_next(request)
        logger.info(f"Response status: {response.status_code}")
        return response
    except Exception as e:
        logger.error(f"Request failed: {str(e)}")
        raise


@app.get("/")
def read_root():
    return {"status": "API is up and running", "version": "1.0.0"}
