"""
Opening record sources from dataset handles.

Database credentials come from HashiCorp Vault (use_vault=True) or from
environment variables:

- PostgreSQL: POSTGRES_HOST, POSTGRES_PORT, POSTGRES_DB, POSTGRES_USER,
  POSTGRES_PASSWORD
- SQL Server: SQLSERVER_HOST, SQLSERVER_DATABASE, SQLSERVER_USER,
  SQLSERVER_PASSWORD
"""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from datarecon.config import parse_handle
from datarecon.scanner import JsonLinesRecordSource, RecordSource, SqlTableRecordSource
from datarecon.utils.vault import VaultClient

logger = logging.getLogger(__name__)

# Handle kind -> dialect name used by the vault and the SQL source
DIALECTS = {"postgres": "postgresql", "sqlserver": "sqlserver"}


def get_credentials(dialect: str, use_vault: bool = False) -> dict[str, Any]:
    """
    Connection settings for 'postgresql' or 'sqlserver'

    Raises:
        ValueError: Unknown dialect or no password configured
    """
    if use_vault:
        return VaultClient().get_database_credentials(dialect)

    if dialect == "postgresql":
        credentials = {
            "host": os.getenv("POSTGRES_HOST", "localhost"),
            "port": int(os.getenv("POSTGRES_PORT", "5432")),
            "database": os.getenv("POSTGRES_DB", "postgres"),
            "username": os.getenv("POSTGRES_USER", "postgres"),
            "password": os.getenv("POSTGRES_PASSWORD"),
        }
    elif dialect == "sqlserver":
        credentials = {
            "server": os.getenv("SQLSERVER_HOST", "localhost"),
            "database": os.getenv("SQLSERVER_DATABASE", "master"),
            "username": os.getenv("SQLSERVER_USER", "sa"),
            "password": os.getenv("SQLSERVER_PASSWORD"),
        }
    else:
        raise ValueError(f"Unsupported dialect: {dialect}")

    if not credentials["password"]:
        raise ValueError(f"No password configured for {dialect}")
    return credentials


def connect(dialect: str, credentials: dict[str, Any]):
    """Open a DB-API connection set up for a stable paged read."""
    if dialect == "postgresql":
        import psycopg2

        conn = psycopg2.connect(
            host=credentials["host"],
            port=credentials.get("port", 5432),
            dbname=credentials["database"],
            user=credentials["username"],
            password=credentials["password"],
        )
        # One snapshot for the whole pass keeps OFFSET paging stable
        conn.set_session(isolation_level="REPEATABLE READ", readonly=True)
        logger.info(f"Connected to PostgreSQL {credentials['host']}/{credentials['database']}")
        return conn

    import pyodbc

    conn = pyodbc.connect(
        f"DRIVER={{ODBC Driver 18 for SQL Server}};"
        f"SERVER={credentials['server']};"
        f"DATABASE={credentials['database']};"
        f"UID={credentials['username']};"
        f"PWD={credentials['password']};"
        f"TrustServerCertificate=yes;"
    )
    logger.info(f"Connected to SQL Server {credentials['server']}/{credentials['database']}")
    return conn


@contextmanager
def open_record_source(
    handle: str, id_field: str = "id", use_vault: bool = False
) -> Iterator[RecordSource]:
    """
    Open the record source behind a handle, closing any connection on exit

    Example:
        >>> with open_record_source("jsonl:users.jsonl") as source:
        ...     print(source.count())
    """
    kind, location = parse_handle(handle)
    if kind == "jsonl":
        yield JsonLinesRecordSource(location, id_field=id_field)
        return

    dialect = DIALECTS[kind]
    conn = connect(dialect, get_credentials(dialect, use_vault))
    cursor = conn.cursor()
    try:
        yield SqlTableRecordSource(cursor, location, id_field=id_field, dialect=dialect)
    finally:
        cursor.close()
        conn.close()
