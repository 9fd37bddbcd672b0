"""
Day-bucketed usage aggregation.

Each call adds one request and its metrics to the row keyed by
(service_type, provider, day). Stores perform the increment atomically,
so concurrent calls for the same key never lose updates.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, replace
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import (
    Column,
    Date,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    func,
    select,
)
from sqlalchemy.engine import Engine

from ..core.errors import InvalidArgumentError, ProviderConfigurationError

logger = logging.getLogger(__name__)

# metric key -> aggregate column
METRIC_FIELDS = {
    "tokens": "tokens_used",
    "characters": "characters_used",
    "audio_seconds": "audio_seconds_used",
    "images": "images_generated",
    "cost": "estimated_cost",
}


def validate_metrics(metrics: Optional[Dict[str, float]]) -> Dict[str, float]:
    """
    Check metric names and values before they reach a store.

    Raises:
        InvalidArgumentError: If a metric name is unknown or a value is negative
    """
    metrics = dict(metrics or {})
    for name, value in metrics.items():
        if name not in METRIC_FIELDS:
            raise InvalidArgumentError(f"Unknown usage metric: {name}")
        if value is not None and value < 0:
            raise InvalidArgumentError(f"Usage metric {name} must not be negative")
    return metrics


@dataclass(frozen=True)
class UsageRecord:
    """Aggregate usage for one (service_type, provider, day)."""
    service_type: str
    provider: str
    usage_date: date
    request_count: int = 0
    tokens_used: int = 0
    characters_used: int = 0
    audio_seconds_used: float = 0.0
    images_generated: int = 0
    estimated_cost: float = 0.0
    configuration_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["usage_date"] = self.usage_date.isoformat()
        return data


class UsageStore(ABC):
    """Storage contract for usage aggregates."""

    @abstractmethod
    def upsert(
        self,
        service_type: str,
        provider: str,
        usage_date: date,
        increments: Dict[str, float],
        configuration_id: Optional[str] = None,
    ) -> None:
        """Atomically add one request and the metric increments to a day row."""
        pass

    @abstractmethod
    def get(self, service_type: str, provider: str, usage_date: date) -> Optional[UsageRecord]:
        pass

    @abstractmethod
    def query(
        self,
        service_type: Optional[str],
        start: date,
        end: date,
    ) -> List[UsageRecord]:
        """Rows between start and end (inclusive), ordered by day then provider."""
        pass

    def total_cost(self, start: date, end: date) -> float:
        return sum(r.estimated_cost for r in self.query(None, start, end))


class InMemoryUsageStore(UsageStore):
    """Process-local store guarded by a lock."""

    def __init__(self):
        self._rows: Dict[tuple, UsageRecord] = {}
        self._lock = threading.Lock()

    def upsert(self, service_type, provider, usage_date, increments, configuration_id=None):
        key = (service_type, provider, usage_date)
        with self._lock:
            row = self._rows.get(key) or UsageRecord(service_type, provider, usage_date)
            changes = {
                column: getattr(row, column) + amount
                for column, amount in increments.items()
            }
            changes["request_count"] = row.request_count + 1
            if configuration_id is not None:
                changes["configuration_id"] = configuration_id
            self._rows[key] = replace(row, **changes)

    def get(self, service_type, provider, usage_date):
        with self._lock:
            return self._rows.get((service_type, provider, usage_date))

    def query(self, service_type, start, end):
        with self._lock:
            rows = [
                r for r in self._rows.values()
                if start <= r.usage_date <= end
                and (service_type is None or r.service_type == service_type)
            ]
        return sorted(rows, key=lambda r: (r.usage_date, r.provider, r.service_type))


metadata = MetaData()

usage_table = Table(
    "llm_service_usage",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("service_type", String(32), nullable=False),
    Column("provider", String(64), nullable=False),
    Column("usage_date", Date, nullable=False),
    Column("request_count", Integer, nullable=False, default=0),
    Column("tokens_used", Integer, nullable=False, default=0),
    Column("characters_used", Integer, nullable=False, default=0),
    Column("audio_seconds_used", Float, nullable=False, default=0.0),
    Column("images_generated", Integer, nullable=False, default=0),
    Column("estimated_cost", Float, nullable=False, default=0.0),
    Column("configuration_id", String(64), nullable=True),
    UniqueConstraint("service_type", "provider", "usage_date", name="uq_llm_service_usage_day"),
)


class SqlUsageStore(UsageStore):
    """
    SQL store using INSERT ... ON CONFLICT DO UPDATE.

    Supports SQLite and PostgreSQL, the two dialects with a native
    conflict-update clause in SQLAlchemy.
    """

    SUPPORTED_DIALECTS = ("sqlite", "postgresql")

    def __init__(self, engine: Optional[Engine] = None, url: Optional[str] = None, create_tables: bool = True):
        """
        Initialize the store.

        Args:
            engine: Existing SQLAlchemy engine
            url: Database URL used when no engine is given
            create_tables: Create the usage table if it does not exist
        """
        if engine is None:
            if not url:
                raise ProviderConfigurationError("SqlUsageStore needs an engine or a database URL")
            engine = create_engine(url)

        if engine.dialect.name not in self.SUPPORTED_DIALECTS:
            raise ProviderConfigurationError(
                f"Unsupported database dialect for usage tracking: {engine.dialect.name}"
            )

        self._engine = engine
        if create_tables:
            metadata.create_all(engine)

    def _insert(self):
        if self._engine.dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert
        return insert(usage_table)

    def upsert(self, service_type, provider, usage_date, increments, configuration_id=None):
        values = {column: 0 for column in METRIC_FIELDS.values()}
        values.update(increments)

        stmt = self._insert().values(
            service_type=service_type,
            provider=provider,
            usage_date=usage_date,
            request_count=1,
            configuration_id=configuration_id,
            **values,
        )

        c = usage_table.c
        updates = {column: c[column] + stmt.excluded[column] for column in METRIC_FIELDS.values()}
        updates["request_count"] = c.request_count + 1
        updates["configuration_id"] = func.coalesce(stmt.excluded.configuration_id, c.configuration_id)

        stmt = stmt.on_conflict_do_update(
            index_elements=["service_type", "provider", "usage_date"],
            set_=updates,
        )

        with self._engine.begin() as conn:
            conn.execute(stmt)

    def get(self, service_type, provider, usage_date):
        stmt = select(usage_table).where(
            usage_table.c.service_type == service_type,
            usage_table.c.provider == provider,
            usage_table.c.usage_date == usage_date,
        )
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return self._to_record(row) if row else None

    def query(self, service_type, start, end):
        stmt = select(usage_table).where(
            usage_table.c.usage_date >= start,
            usage_table.c.usage_date <= end,
        )
        if service_type is not None:
            stmt = stmt.where(usage_table.c.service_type == service_type)
        stmt = stmt.order_by(usage_table.c.usage_date, usage_table.c.provider, usage_table.c.service_type)

        with self._engine.connect() as conn:
            return [self._to_record(row) for row in conn.execute(stmt).mappings()]

    def total_cost(self, start, end):
        stmt = select(func.coalesce(func.sum(usage_table.c.estimated_cost), 0.0)).where(
            usage_table.c.usage_date >= start,
            usage_table.c.usage_date <= end,
        )
        with self._engine.connect() as conn:
            return float(conn.execute(stmt).scalar_one())

    @staticmethod
    def _to_record(row) -> UsageRecord:
        return UsageRecord(
            service_type=row["service_type"],
            provider=row["provider"],
            usage_date=row["usage_date"],
            request_count=row["request_count"],
            tokens_used=row["tokens_used"],
            characters_used=row["characters_used"],
            audio_seconds_used=row["audio_seconds_used"],
            images_generated=row["images_generated"],
            estimated_cost=row["estimated_cost"],
            configuration_id=row["configuration_id"],
        )


class UsageTracker:
    """
    Records usage events and answers aggregate queries.

    Writes are best effort: a failing store is logged and the caller
    carries on.
    """

    def __init__(
        self,
        store: Optional[UsageStore] = None,
        today: Callable[[], date] = date.today,
    ):
        self._store = store if store is not None else InMemoryUsageStore()
        self._today = today

    @property
    def store(self) -> UsageStore:
        return self._store

    def track_usage(
        self,
        service_type: str,
        provider: str,
        metrics: Optional[Dict[str, float]] = None,
        configuration_id: Optional[str] = None,
    ) -> bool:
        """
        Record one request.

        Args:
            service_type: Service name (e.g. "chat", "embeddings", "translation")
            provider: Provider identifier
            metrics: Any of tokens, characters, audio_seconds, images, cost
            configuration_id: Reference to the configuration that served the call

        Returns:
            True if the event was stored

        Raises:
            InvalidArgumentError: If a metric name is unknown or a value is negative
        """
        increments = {
            METRIC_FIELDS[name]: value
            for name, value in validate_metrics(metrics).items()
            if value is not None
        }

        try:
            self._store.upsert(
                service_type,
                provider,
                self._today(),
                increments,
                str(configuration_id) if configuration_id is not None else None,
            )
        except Exception as e:
            logger.warning(f"Failed to record usage for {service_type}/{provider}: {e}")
            return False
        return True

    def get_today_usage(self, service_type: str, provider: str) -> Optional[UsageRecord]:
        return self._store.get(service_type, provider, self._today())

    def get_usage_report(
        self,
        service_type: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """
        Per-day usage series with a per-provider breakdown.

        Args:
            service_type: Restrict to one service type (all when None)
            start: First day (defaults to the first of the current month)
            end: Last day (defaults to today)

        Returns:
            One dict per day with summed metrics and a "providers" map
        """
        end = end or self._today()
        start = start or end.replace(day=1)

        days: Dict[date, Dict[str, Any]] = {}
        for record in self._store.query(service_type, start, end):
            day = days.setdefault(record.usage_date, {
                "date": record.usage_date.isoformat(),
                "request_count": 0,
                "tokens_used": 0,
                "characters_used": 0,
                "audio_seconds_used": 0.0,
                "images_generated": 0,
                "estimated_cost": 0.0,
                "providers": {},
            })
            day["request_count"] += record.request_count
            for column in METRIC_FIELDS.values():
                day[column] += getattr(record, column)

            provider = day["providers"].setdefault(record.provider, {
                "request_count": 0,
                **{column: 0 for column in METRIC_FIELDS.values()},
            })
            provider["request_count"] += record.request_count
            for column in METRIC_FIELDS.values():
                provider[column] += getattr(record, column)

        return [days[d] for d in sorted(days)]

    def get_current_month_cost(self) -> float:
        """Summed estimated cost across all services and providers this month."""
        today = self._today()
        return self._store.total_cost(today.replace(day=1), today)
