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

import hashlib
import time
from typing import Callable, List, Optional
from sqlalchemy.orm import Session

from database import crud
from database.schemas import ToolConsumer
from logging_config import setup_logging

logger = setup_logging(module_name='lti_consumers')


def generate_credential(label: str) -> str:
    """Hash of a label and the current timestamp, used for keys and secrets"""
    return hashlib.md5(f"{label}{time.time()}".encode('utf-8')).hexdigest()


class ConsumerRegistry:
    """Creates and looks up the Tool Consumers trusted by this tool"""

    def __init__(self, db: Session, log: Optional[Callable[[str], None]] = None):
        self.db = db
        self._log = log or logger.info

    def list_consumers(self) -> List[ToolConsumer]:
        return [ToolConsumer.model_validate(consumer) for consumer in crud.get_consumers(self.db)]

    def lookup(self, consumer_key: str) -> Optional[ToolConsumer]:
        consumer = crud.get_consumer_by_key(self.db, consumer_key)
        if consumer is None or not consumer.enabled:
            return None
        return ToolConsumer.model_validate(consumer)

    def create_consumer(self, name: str, key: Optional[str] = None, secret: Optional[str] = None) -> bool:
        """Create a consumer unless one with the same name already exists

        Returns False, without touching the stored consumers, for a
        duplicate name.
        """
        if any(consumer.name == name for consumer in crud.get_consumers(self.db)):
            self._log(f"Could not recreate consumer '{name}', consumer already exists")
            return False

        crud.create_consumer(
            self.db,
            consumer_key=key or generate_credential('key'),
            name=name,
            secret=secret or generate_credential('secret')
        )
        self._log(f"Created consumer {name}")
        return True
