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

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, JSON, UniqueConstraint
from sqlalchemy.sql import func
from constants import TOOL_METADATA_TABLE, TOOL_CACHE_TABLE, LTI_CONSUMERS_TABLE, LTI_NONCES_TABLE
from database.db import Base


class ToolMetadataEntry(Base):
    __tablename__ = TOOL_METADATA_TABLE
    __table_args__ = (UniqueConstraint('tool_id', 'key', name='uq_tool_metadata_tool_key'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tool_id = Column(String(255), nullable=False, index=True)
    key = Column(String(255), nullable=False)
    value = Column(JSON, nullable=True)
    updated = Column(DateTime, server_default=func.now(), onupdate=func.now())


class CacheEntry(Base):
    __tablename__ = TOOL_CACHE_TABLE
    __table_args__ = (UniqueConstraint('namespace', 'key', name='uq_tool_cache_namespace_key'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    namespace = Column(String(255), nullable=False, index=True)
    key = Column(String(255), nullable=False)
    value = Column(JSON, nullable=True)
    # unix timestamp, NULL never expires
    expires = Column(Float, nullable=True)


class LTIConsumer(Base):
    __tablename__ = LTI_CONSUMERS_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    consumer_key = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    secret = Column(String(255), nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    created = Column(DateTime, server_default=func.now())
    updated = Column(DateTime, server_default=func.now(), onupdate=func.now())


class LTINonce(Base):
    __tablename__ = LTI_NONCES_TABLE
    __table_args__ = (UniqueConstraint('consumer_key', 'value', name='uq_lti_nonces_consumer_value'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    consumer_key = Column(String(255), nullable=False, index=True)
    value = Column(String(255), nullable=False)
    expires = Column(Float, nullable=False)
