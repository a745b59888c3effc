"""
Report storage for MongoDB, any SQLAlchemy database, and an in-memory test implementation.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Any, Mapping, Optional, Protocol
from urllib.parse import urlsplit

from pymongo import DESCENDING, MongoClient
from pymongo import errors as mongo_errors
from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from travelsafe.config import Settings
from travelsafe.errors import StoreUnavailable
from travelsafe.schemas import Report, StoredReport, coerce_report

logger = logging.getLogger(__name__)

DEFAULT_SORT_KEY = "metadata.timestamp"
COUNTRY_KEY = "location.country"


class ReportStore(Protocol):
    """Interface for report persistence."""

    def connect(self) -> bool:
        ...

    def insert(self, report: Report | Mapping[str, Any]) -> str:
        ...

    def find(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        sort_key: str = DEFAULT_SORT_KEY,
        sort_direction: int = -1,
        limit: int = 10,
    ) -> list[StoredReport]:
        ...

    def close(self) -> None:
        ...


def country_filter(country: Optional[str]) -> dict:
    """Equality match on location.country, or match-all when no country is given."""
    return {COUNTRY_KEY: country} if country else {}


def _lookup(doc: Mapping[str, Any], dotted_key: str) -> Any:
    value: Any = doc
    for part in dotted_key.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _matches(doc: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    return all(_lookup(doc, key) == expected for key, expected in filter.items())


def _sorted_docs(
    docs: list[dict], sort_key: str, sort_direction: int
) -> list[dict]:
    # Missing values go last when descending, first when ascending (Mongo order).
    present = [d for d in docs if _lookup(d, sort_key) is not None]
    missing = [d for d in docs if _lookup(d, sort_key) is None]
    present.sort(key=lambda d: _lookup(d, sort_key), reverse=sort_direction < 0)
    if sort_direction < 0:
        return present + missing
    return missing + present


class InMemoryReportStore:
    """Simple in-memory report log for development and tests."""

    def __init__(self):
        self.reports: list[dict] = []
        self._lock = threading.Lock()

    def connect(self) -> bool:
        logger.info("Using in-memory report store")
        return True

    def insert(self, report: Report | Mapping[str, Any]) -> str:
        doc = coerce_report(report).to_document()
        doc["_id"] = uuid.uuid4().hex
        with self._lock:
            self.reports.append(doc)
        return doc["_id"]

    def find(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        sort_key: str = DEFAULT_SORT_KEY,
        sort_direction: int = -1,
        limit: int = 10,
    ) -> list[StoredReport]:
        with self._lock:
            docs = [d for d in self.reports if _matches(d, filter or {})]
        docs = _sorted_docs(docs, sort_key, sort_direction)
        return [StoredReport.model_validate(d) for d in docs[:limit]]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.reports.clear()

    def close(self) -> None:
        pass


class MongoReportStore:
    """pymongo-backed implementation over a single collection."""

    def __init__(
        self,
        uri: str,
        db_name: str = "travelsafe",
        collection: str = "reports",
        timeout_ms: int = 5000,
        client: Optional[MongoClient] = None,
    ):
        if not uri and client is None:
            raise ValueError("MONGO_URI is required for MongoReportStore")
        # MongoClient connects lazily; requests fail individually if the server is down.
        self.client = client or MongoClient(
            uri,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
        )
        try:
            database = self.client.get_default_database()
        except mongo_errors.ConfigurationError:
            database = self.client[db_name]
        self.db = database
        self.collection = database[collection]

    def connect(self) -> bool:
        try:
            self.db.command("ping")
        except mongo_errors.PyMongoError as exc:
            logger.error("MongoDB connection error: %s", exc)
            return False
        logger.info("Connected to MongoDB (%s)", self.db.name)
        return True

    def insert(self, report: Report | Mapping[str, Any]) -> str:
        doc = coerce_report(report).to_document()
        try:
            result = self.collection.insert_one(doc)
        except mongo_errors.PyMongoError as exc:
            raise StoreUnavailable(f"MongoDB insert failed: {exc}") from exc
        return str(result.inserted_id)

    def find(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        sort_key: str = DEFAULT_SORT_KEY,
        sort_direction: int = -1,
        limit: int = 10,
    ) -> list[StoredReport]:
        direction = DESCENDING if sort_direction < 0 else 1
        try:
            cursor = (
                self.collection.find(dict(filter or {}))
                .sort(sort_key, direction)
                .limit(limit)
            )
            docs = list(cursor)
        except mongo_errors.PyMongoError as exc:
            raise StoreUnavailable(f"MongoDB find failed: {exc}") from exc
        results = []
        for doc in docs:
            doc["_id"] = str(doc["_id"])
            results.append(StoredReport.model_validate(doc))
        return results

    def close(self) -> None:
        self.client.close()


class SqlReportStore:
    """
    SQLAlchemy-backed implementation storing each report as a JSON document.
    Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, timeout_ms: int = 5000):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlReportStore")
        connect_args = {}
        if database_url.startswith("postgresql"):
            connect_args["connect_timeout"] = max(1, timeout_ms // 1000)
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
            connect_args=connect_args,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )

    def connect(self) -> bool:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            logger.error("Database connection error: %s", exc)
            return False
        logger.info("Connected to %s database", self.engine.dialect.name)
        return True

    def insert(self, report: Report | Mapping[str, Any]) -> str:
        doc = coerce_report(report).to_document()
        row = ReportRow(
            id=uuid.uuid4().hex,
            country=_lookup(doc, COUNTRY_KEY),
            timestamp=_lookup(doc, DEFAULT_SORT_KEY),
            created_at=time.time(),
            document=doc,
        )
        try:
            with self.Session() as session:
                session.add(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Database insert failed: {exc}") from exc
        return row.id

    def find(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        sort_key: str = DEFAULT_SORT_KEY,
        sort_direction: int = -1,
        limit: int = 10,
    ) -> list[StoredReport]:
        filter = dict(filter or {})
        columns = {COUNTRY_KEY: ReportRow.country, DEFAULT_SORT_KEY: ReportRow.timestamp}
        unknown = set(filter) - {COUNTRY_KEY}
        if unknown or sort_key not in columns:
            raise ValueError(
                f"SqlReportStore only filters on {COUNTRY_KEY} and sorts on "
                f"indexed columns, got filter={sorted(filter)} sort={sort_key}"
            )
        sort_column = columns[sort_key]
        order = (
            sort_column.desc().nulls_last()
            if sort_direction < 0
            else sort_column.asc().nulls_first()
        )
        stmt = select(ReportRow)
        if COUNTRY_KEY in filter:
            stmt = stmt.where(ReportRow.country == filter[COUNTRY_KEY])
        stmt = stmt.order_by(order, ReportRow.created_at.asc()).limit(limit)
        try:
            with self.Session() as session:
                rows = session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Database find failed: {exc}") from exc
        return [
            StoredReport.model_validate({**row.document, "_id": row.id})
            for row in rows
        ]

    def close(self) -> None:
        self.engine.dispose()


Base = declarative_base()


class ReportRow(Base):
    __tablename__ = "reports"

    id = Column(String, primary_key=True)
    country = Column(String, nullable=True, index=True)
    timestamp = Column(String, nullable=True, index=True)
    created_at = Column(Float, nullable=False)
    document = Column(JSON, nullable=False)


def _is_mongo_url(url: str) -> bool:
    return urlsplit(url).scheme in ("mongodb", "mongodb+srv")


def build_report_store(settings: Settings) -> ReportStore:
    """Pick a store implementation for the configured datastore URL."""
    if settings.use_in_memory_backends or not settings.database_url:
        return InMemoryReportStore()
    if _is_mongo_url(settings.database_url):
        return MongoReportStore(
            settings.database_url,
            db_name=settings.mongo_db_name,
            collection=settings.reports_collection,
            timeout_ms=settings.db_timeout_ms,
        )
    return SqlReportStore(settings.database_url, timeout_ms=settings.db_timeout_ms)
