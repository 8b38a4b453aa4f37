from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import psycopg
from psycopg import Connection
from psycopg.conninfo import conninfo_to_dict

from ..errors import StoreError
from ..settings import Settings, get_settings

logger = logging.getLogger(__name__)


def describe_db_url(db_url: str) -> Tuple[str, str, str]:
    host = "unknown"
    dbname = "unknown"
    user = "unknown"
    try:
        parts = conninfo_to_dict(db_url)
    except psycopg.ProgrammingError:
        return host, dbname, user
    host_value = parts.get("host") or parts.get("hostaddr")
    if host_value:
        host = str(host_value)
    dbname_value = parts.get("dbname")
    if dbname_value:
        dbname = str(dbname_value)
    user_value = parts.get("user")
    if user_value:
        user = str(user_value)
    return host, dbname, user


@contextmanager
def connect(settings: Optional[Settings] = None) -> Iterator[Connection]:
    """Open one autocommit connection and close it on every exit path.

    Atomicity comes from the caller's explicit ``conn.transaction()`` block.
    """
    settings = settings or get_settings()
    db_url = settings.require_database_url()
    host, dbname, user = describe_db_url(db_url)
    logger.info("Connecting to db host=%s dbname=%s user=%s", host, dbname, user)

    try:
        conn = psycopg.connect(
            db_url,
            autocommit=True,
            connect_timeout=settings.connect_timeout,
            application_name=settings.application_name,
        )
    except psycopg.Error as exc:
        logger.error("Unable to connect to db host=%s dbname=%s: %s", host, dbname, exc)
        raise StoreError(exc, action="connection") from exc
    try:
        yield conn
    finally:
        conn.close()
        logger.debug("Closed db connection host=%s", host)
