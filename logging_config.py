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

import logging
import sys
import os
from typing import List, Optional, Tuple

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()
TOOL_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_LOGGING_INITIALIZED = False

def setup_logging(module_name=None):
    global _LOGGING_INITIALIZED
    if _LOGGING_INITIALIZED:
        return logging.getLogger(module_name or __name__)

    _LOGGING_INITIALIZED = True

    # Create the root logger
    logger = logging.getLogger()
    logger.setLevel(LOG_LEVEL)

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    stream_handler = logging.StreamHandler(stream=sys.stdout)
    stream_handler.setLevel(LOG_LEVEL)

    formatter = logging.Formatter(TOOL_LOG_FORMAT)
    stream_handler.setFormatter(formatter)

    logger.addHandler(stream_handler)

    # Suppress noisy 3rd-party libraries by setting their log level higher (ERROR)
    noisy_loggers = [
        "urllib3",
        "urllib3.connectionpool",
        "sqlalchemy.engine",
        "oauthlib",
        "python_multipart.multipart",
    ]
    for noisy_logger_name in noisy_loggers:
        noisy_logger = logging.getLogger(noisy_logger_name)
        noisy_logger.setLevel(logging.ERROR)
        noisy_logger.propagate = False  # Prevent double logging

    # Return module-specific logger
    module_logger = logging.getLogger(module_name or __name__)
    module_logger.info(f"Logging initialized for {module_name or __name__} at level {LOG_LEVEL}")

    return module_logger


class ToolLog:
    """Per-tool log file with a buffering stage

    Messages logged before the tool's log file is known are queued. Calling
    `go_live(path)` attaches a file handler to the tool logger, flushes the
    queue in order and writes every later message straight through. The
    transition happens once; later calls only retarget the file handler.
    """

    def __init__(self, tool_id: str):
        self.logger = logging.getLogger(f"tool.{tool_id}")
        self._queue: List[Tuple[int, str]] = []
        self._live = False
        self.path: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self._live

    @property
    def pending(self) -> List[str]:
        return [message for _, message in self._queue]

    def log(self, message: str, level: int = logging.INFO):
        if not self._live:
            self._queue.append((level, message))
            return
        self.logger.log(level, message)

    def go_live(self, path: str):
        self._attach(path)
        if self._live:
            return
        self._live = True
        queued, self._queue = self._queue, []
        for level, message in queued:
            self.logger.log(level, message)

    def _attach(self, path: str):
        path = os.path.abspath(path)
        self.path = path
        for handler in list(self.logger.handlers):
            if isinstance(handler, logging.FileHandler):
                if handler.baseFilename == path:
                    return
                self.logger.removeHandler(handler)
                handler.close()
        file_handler = logging.FileHandler(path)
        file_handler.setFormatter(logging.Formatter(TOOL_LOG_FORMAT))
        self.logger.addHandler(file_handler)
        self.logger.setLevel(LOG_LEVEL)
