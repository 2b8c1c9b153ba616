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
import logging
from typing import Dict, Union
from sqlalchemy import create_engine, orm, text
from sqlalchemy.engine import Engine, URL, make_url
from sqlalchemy.orm import sessionmaker, Session

from constants import DEFAULT_MYSQL_DRIVER

logger = logging.getLogger(__name__)

Base = orm.declarative_base()

_ENGINES: Dict[str, Engine] = {}
_SESSION_FACTORIES: Dict[str, sessionmaker] = {}


def build_database_url(params: Dict[str, str]) -> Union[str, URL]:
    """Build a SQLAlchemy URL from the <mysql> block of a tool configuration

    An explicit `url` entry wins; otherwise the URL is assembled from the
    host/port/username/password/database entries.
    """
    if params.get('url'):
        return params['url']

    port = params.get('port')
    return URL.create(
        drivername=params.get('driver') or os.getenv("MYSQL_DRIVER", DEFAULT_MYSQL_DRIVER),
        username=params.get('username') or params.get('user'),
        password=params.get('password'),
        host=params.get('host'),
        port=int(port) if port else None,
        database=params.get('database') or params.get('dbname'),
    )


def _engine_key(url: Union[str, URL]) -> str:
    return make_url(url).render_as_string(hide_password=False)


def get_engine(url: Union[str, URL]) -> Engine:
    key = _engine_key(url)
    engine = _ENGINES.get(key)
    if engine is None:
        kwargs = {"echo": False, "pool_pre_ping": True}
        if not key.startswith("sqlite"):
            kwargs.update(pool_recycle=1800, pool_size=10, max_overflow=20, pool_timeout=30)
        engine = create_engine(url, **kwargs)
        _ENGINES[key] = engine
    return engine


def get_session_local(url: Union[str, URL]) -> sessionmaker:
    key = _engine_key(url)
    if key not in _SESSION_FACTORIES:
        _SESSION_FACTORIES[key] = sessionmaker(autocommit=False, autoflush=False, bind=get_engine(url))
    return _SESSION_FACTORIES[key]


def init_storage(url: Union[str, URL]) -> Session:
    """Connect to the storage engine and open a session on it

    The first call for a given URL in this process also creates any missing
    tables and purges expired cache entries and nonces. Connection failures
    propagate as `sqlalchemy.exc.OperationalError`.
    """
    from database import models  # noqa: F401  registers the tables on Base
    from database import crud

    key = _engine_key(url)
    first_use = key not in _SESSION_FACTORIES
    engine = get_engine(url)

    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))

    if first_use:
        Base.metadata.create_all(bind=engine)

    db = get_session_local(url)()
    if first_use:
        purged = crud.purge_expired(db)
        logger.info(f"Storage initialized for {make_url(url).render_as_string(hide_password=True)}, purged {purged} expired entries")
    return db


def dispose_engines():
    for engine in _ENGINES.values():
        engine.dispose()
    _ENGINES.clear()
    _SESSION_FACTORIES.clear()
