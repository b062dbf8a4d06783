"""The ``get_database_table_ddl`` tool.

Reads a table's column layout from a PostgreSQL ``information_schema`` and
renders it twice: as raw rows and as a short human-readable data dictionary.

Connection fields missing from the call arguments fall back to the usual
libpq variables (PGHOST, PGPORT, PGUSER, PGPASSWORD, PGDATABASE), read from
the environment or a ``.env`` file.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from functools import partial
from typing import Any

import anyio.to_thread
import psycopg2
from psycopg2.extras import RealDictCursor
from pydantic import BaseModel, ConfigDict, ValidationError

from data_steward.config import PostgresSettings
from data_steward.tools.base import text_result
from data_steward.types.tools import CallToolResult, JsonSchema, PropertySchema, Tool, ToolAnnotations
from data_steward.utilities.logging import redact_sensitive_data

logger = logging.getLogger(__name__)

TOOL_NAME = "get_database_table_ddl"
SUPPORTED_DATABASE_TYPES = frozenset({"postgresql", "postgres"})
DEFAULT_CONNECT_TIMEOUT = 10

COLUMNS_QUERY = """
    SELECT column_name, data_type, character_maximum_length
    FROM information_schema.columns
    WHERE table_catalog = %s AND table_name = %s
    ORDER BY ordinal_position ASC
"""

MISSING_PARAMETERS_MESSAGE = "Missing required parameters: database_type, connection_info, or table_name."
INCOMPLETE_CONNECTION_MESSAGE = (
    "Database connection info is incomplete. Please provide all required fields or set them in .env."
)


class ConnectionInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None


class TableDDLArguments(BaseModel):
    model_config = ConfigDict(extra="ignore")

    database_type: str | None = None
    connection_info: ConnectionInfo | None = None
    table_name: str | None = None


@dataclass(frozen=True)
class PostgresConnection:
    """A fully resolved set of connection parameters."""

    host: str
    port: int
    user: str
    password: str
    database: str


def resolve_connection(info: ConnectionInfo, fallback: PostgresSettings) -> PostgresConnection | None:
    """Fill missing fields from ``fallback``. Returns None if anything is still missing."""
    host = info.host or fallback.host
    port = info.port or fallback.port
    user = info.user or fallback.user
    password = info.password or fallback.password
    database = info.database or fallback.database
    if not (host and port and user and password and database):
        return None
    return PostgresConnection(host=host, port=port, user=user, password=password, database=database)


def fetch_columns(
    connection: PostgresConnection,
    table_name: str,
    *,
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
) -> list[dict[str, Any]]:
    """Run the column query. Blocking; call it from a worker thread."""
    conn = psycopg2.connect(
        host=connection.host,
        port=connection.port,
        user=connection.user,
        password=connection.password,
        dbname=connection.database,
        connect_timeout=connect_timeout,
    )
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cursor:
            cursor.execute(COLUMNS_QUERY, (connection.database, table_name))
            return [dict(row) for row in cursor.fetchall()]
    finally:
        conn.close()


def format_data_dictionary(table_name: str, rows: list[dict[str, Any]]) -> str:
    lines = [f'Table "{table_name}" columns:']
    if not rows:
        lines.append("No columns found.")
        return "\n".join(lines)
    for row in rows:
        entry = f"- {row['column_name']}: {row['data_type']}"
        if row.get("character_maximum_length"):
            entry += f"({row['character_maximum_length']})"
        lines.append(entry)
    return "\n".join(lines) + "\n"


class TableDDLTool:
    """Tool definition for ``get_database_table_ddl``.

    Every failure, including an unreachable database, is returned as an
    error result; ``execute`` never raises.
    """

    name = TOOL_NAME

    def __init__(
        self,
        *,
        connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
        fallback_settings: PostgresSettings | None = None,
    ) -> None:
        self.connect_timeout = connect_timeout
        self._fallback_settings = fallback_settings

    def describe(self) -> Tool:
        return Tool(
            name=TOOL_NAME,
            description=(
                "Retrieves the DDL for a specified table and generates a human-readable data dictionary."
            ),
            input_schema=JsonSchema(
                properties={
                    "database_type": PropertySchema(type="string", description="Type of database (e.g., PostgreSQL)"),
                    "connection_info": PropertySchema(
                        type="object",
                        properties={
                            "host": PropertySchema(type="string"),
                            "port": PropertySchema(type="number"),
                            "user": PropertySchema(type="string"),
                            "password": PropertySchema(type="string"),
                            "database": PropertySchema(type="string"),
                        },
                        required=["host", "port", "user", "password", "database"],
                    ),
                    "table_name": PropertySchema(type="string", description="Name of the table"),
                },
                required=["database_type", "connection_info", "table_name"],
            ),
            annotations=ToolAnnotations(read_only_hint=True, open_world_hint=True),
        )

    async def execute(self, arguments: Mapping[str, Any]) -> CallToolResult:
        logger.debug("Calling %s with %s", TOOL_NAME, redact_sensitive_data(arguments))
        try:
            return await self._execute(arguments)
        except Exception as e:
            logger.exception("Unexpected error in %s", TOOL_NAME)
            return text_result(f"Failed to retrieve DDL: {e}", is_error=True)

    async def _execute(self, arguments: Mapping[str, Any]) -> CallToolResult:
        try:
            args = TableDDLArguments.model_validate(arguments)
        except ValidationError as e:
            return text_result(f"Invalid parameters: {e}", is_error=True)

        if not args.database_type or args.connection_info is None or not args.table_name:
            return text_result(MISSING_PARAMETERS_MESSAGE, is_error=True)

        if args.database_type.lower() not in SUPPORTED_DATABASE_TYPES:
            return text_result(
                f"Unsupported database type: {args.database_type}. Only PostgreSQL is supported.",
                is_error=True,
            )

        fallback = self._fallback_settings or PostgresSettings()
        connection = resolve_connection(args.connection_info, fallback)
        if connection is None:
            return text_result(INCOMPLETE_CONNECTION_MESSAGE, is_error=True)

        try:
            rows = await anyio.to_thread.run_sync(
                partial(fetch_columns, connection, args.table_name, connect_timeout=self.connect_timeout)
            )
        except psycopg2.Error as e:
            logger.warning("DDL query for table %s failed: %s", args.table_name, e)
            return text_result(f"Failed to retrieve DDL: {str(e).strip()}", is_error=True)

        return text_result(
            f"DDL (columns):\n{json.dumps(rows, indent=2, default=str)}",
            f"Data Dictionary:\n{format_data_dictionary(args.table_name, rows)}",
        )
