# ==============================================================================
# PostgreSQL Repository Implementation
# ==============================================================================
"""
PostgreSQL implementation of the EventRepository interface.

Provides:
- Bulk append of analytics events with execute_batch()
- Windowed reads for the aggregation engine (one SELECT = one snapshot)
"""

import logging
from datetime import UTC, datetime

import psycopg2
from psycopg2.extras import Json, RealDictCursor, execute_batch
from pydantic import ValidationError

from promopopup.base.repositories import EventRepository
from promopopup.core.errors import AggregationUnavailable
from promopopup.core.models import AnalyticsEvent, parse_event
from promopopup.utils.config import Settings, get_settings
from promopopup.utils.retry import retry_light

logger = logging.getLogger(__name__)

# Batch size for execute_batch
PAGE_SIZE = 1000

# Connection timeout
CONNECT_TIMEOUT = 10

POSTGRES_RETRY_EXCEPTIONS = (psycopg2.OperationalError, psycopg2.InterfaceError)

EVENT_COLUMNS = (
    "shop",
    "event_type",
    "session_id",
    "popup_id",
    "email",
    "discount_code",
    "prize_label",
    "user_agent",
    "ip_hash",
    "metadata",
)


def _add_connect_timeout(conn_string: str) -> str:
    """Add connect_timeout to connection string if not present."""
    if "connect_timeout" not in conn_string:
        separator = "&" if "?" in conn_string else "?"
        return f"{conn_string}{separator}connect_timeout={CONNECT_TIMEOUT}"
    return conn_string


class PostgreSQLEventRepository(EventRepository):
    """
    PostgreSQL implementation of EventRepository.

    Events live in {schema}.popup_analytics, indexed on (shop, event_time).
    Rows are never updated or deleted on this path.
    """

    def __init__(self, settings: Settings | None = None):
        """
        Initialize the event repository.

        Args:
            settings: Application settings. If None, uses get_settings().
        """
        self._settings = settings or get_settings()
        self._conn: psycopg2.extensions.connection | None = None
        self._schema = self._settings.postgres.schema_name

    @property
    def schema(self) -> str:
        """Get the database schema name."""
        return self._schema

    def connect(self) -> None:
        """Establish connection to PostgreSQL."""
        conn_string = _add_connect_timeout(self._settings.postgres.connection_string)
        try:
            self._conn = psycopg2.connect(conn_string)
        except POSTGRES_RETRY_EXCEPTIONS as e:
            raise AggregationUnavailable(f"Event log unreachable: {e}") from e
        logger.info("PostgreSQLEventRepository connected (schema=%s)", self._schema)

    def _require_conn(self) -> "psycopg2.extensions.connection":
        if self._conn is None:
            raise RuntimeError("PostgreSQL connection not established. Call connect() first.")
        return self._conn

    def init_schema(self) -> None:
        """Create the schema, table and indexes if they do not exist."""
        conn = self._require_conn()
        with conn.cursor() as cur:
            cur.execute(f"CREATE SCHEMA IF NOT EXISTS {self._schema}")
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._schema}.popup_analytics (
                    id            BIGSERIAL PRIMARY KEY,
                    shop          TEXT NOT NULL,
                    event_type    TEXT NOT NULL,
                    session_id    TEXT NOT NULL,
                    popup_id      TEXT,
                    email         TEXT,
                    discount_code TEXT,
                    prize_label   TEXT,
                    user_agent    TEXT,
                    ip_hash       TEXT,
                    metadata      JSONB,
                    event_time    TIMESTAMPTZ NOT NULL
                )
                """
            )
            cur.execute(
                f"CREATE INDEX IF NOT EXISTS popup_analytics_shop_time_idx "
                f"ON {self._schema}.popup_analytics (shop, event_time)"
            )
        conn.commit()
        logger.info("Schema %s initialized", self._schema)

    def append(self, events: list[AnalyticsEvent]) -> int:
        """
        Append events to PostgreSQL.

        Args:
            events: Typed analytics events

        Returns:
            Count of events written
        """
        conn = self._require_conn()
        if not events:
            return 0

        rows = []
        for event in events:
            record = event.to_record()
            row = {column: record.get(column) for column in EVENT_COLUMNS}
            row["metadata"] = Json(record["metadata"]) if "metadata" in record else None
            row["event_time"] = event.event_time
            rows.append(row)

        with conn.cursor() as cur:
            execute_batch(
                cur,
                f"""
                INSERT INTO {self._schema}.popup_analytics
                    ({", ".join(EVENT_COLUMNS)}, event_time)
                VALUES
                    ({", ".join(f"%({c})s" for c in EVENT_COLUMNS)}, %(event_time)s)
                """,
                rows,
                page_size=PAGE_SIZE,
            )
        conn.commit()
        logger.debug("Appended %d events", len(rows))
        return len(rows)

    @retry_light(POSTGRES_RETRY_EXCEPTIONS, logger)
    def _select(self, shop: str, since: datetime, popup_id: str | None) -> list[dict]:
        conn = self._require_conn()
        query = f"""
            SELECT {", ".join(EVENT_COLUMNS)}, event_time
            FROM {self._schema}.popup_analytics
            WHERE shop = %(shop)s AND event_time >= %(since)s
        """
        params: dict = {"shop": shop, "since": since}
        if popup_id is not None:
            query += " AND popup_id = %(popup_id)s"
            params["popup_id"] = popup_id

        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        conn.commit()
        return rows

    def fetch(self, shop: str, since_ms: int, popup_id: str | None = None) -> list[AnalyticsEvent]:
        since = datetime.fromtimestamp(since_ms / 1000.0, tz=UTC)
        try:
            rows = self._select(shop, since, popup_id)
        except (psycopg2.Error, RuntimeError) as e:
            raise AggregationUnavailable(f"Event log unreachable: {e}") from e

        events = []
        for row in rows:
            record = {k: v for k, v in row.items() if v is not None and k != "event_time"}
            record["timestamp"] = int(row["event_time"].timestamp() * 1000)
            try:
                events.append(parse_event(record))
            except ValidationError as e:
                logger.warning("Skipping malformed event row for shop %s: %s", shop, e)
        return events

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.info("PostgreSQLEventRepository closed")
