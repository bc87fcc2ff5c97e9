# forexhub/storage/sql_adapter.py
"""
Durable Store Adapter.

Implements the storage contract on SQLAlchemy. Sessions are synchronous;
every call runs its whole unit of work (validate, write, commit) in one
loop.run_in_executor() call so the event loop is never blocked.

Failure mapping:
- OperationalError / InterfaceError / DisconnectionError / pool TimeoutError,
  and any DBAPIError that invalidated its connection -> StoreUnavailableError
- IntegrityError (a uniqueness race lost at commit) -> ValidationError
- NotFoundError / ValidationError raised by the unit of work pass through

Ordering matches the volatile adapter exactly: ORDER BY the requested
column with explicit NULLS FIRST (asc) / NULLS LAST (desc), then id ASC,
with string columns compared under a binary collation.
"""

import asyncio
import logging
from collections import Counter
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel
from sqlalchemy import Float, String, cast, delete, func, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from forexhub.database import create_db_engine, init_db, make_session_factory
from forexhub.logging_config import log_storage_operation
from forexhub.models import MODELS_BY_COLLECTION, row_to_record
from forexhub.models import AnalyticsEvent as AnalyticsEventRow
from forexhub.models import Download as DownloadRow
from forexhub.models import Post as PostRow
from forexhub.models import Review as ReviewRow
from forexhub.models import User as UserRow
from forexhub.schemas.catalog import Download
from forexhub.schemas.content import PostStatus
from forexhub.schemas.engagement import EventType
from forexhub.schemas.users import User
from forexhub.storage.base import (
    AnalyticsRepository,
    CategoryRepository,
    CommentRepository,
    DownloadRepository,
    NewsletterRepository,
    PostRepository,
    Repository,
    ReviewRepository,
    SeoMetaRepository,
    StorageAdapter,
    UserRepository,
    count_tags,
    rank_content,
)
from forexhub.storage.errors import InitializationError, NotFoundError, StoreUnavailableError, ValidationError
from forexhub.storage.pagination import Page, PaginationOptions, SortOrder, resolve_sort_field
from forexhub.storage.rules import (
    ANALYTICS_EVENTS,
    CATEGORIES,
    COMMENTS,
    DOWNLOADS,
    NEWSLETTER_SUBSCRIBERS,
    POSTS,
    REVIEWS,
    SEO_META,
    USERS,
    EntityRules,
    FilterCondition,
    filter_conditions,
    plan_delete,
    validate_record,
)
from forexhub.storage.text import escape_like, naive_utc, normalize_search_text, utcnow

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Code-point ordering for string columns; sqlite's default BINARY already is
BINARY_COLLATIONS = {
    "postgresql": "C",
    "mysql": "utf8mb4_bin",
}

_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)


class SqlRecordSource:
    """RecordSource over an open session, used by the shared validation rules."""

    def __init__(self, session: Session):
        self._session = session

    def get(self, collection: str, record_id: str) -> dict | None:
        row = self._session.get(MODELS_BY_COLLECTION[collection], record_id)
        return row_to_record(row) if row is not None else None

    def find_one(self, collection: str, field: str, value: Any) -> dict | None:
        model = MODELS_BY_COLLECTION[collection]
        row = self._session.execute(select(model).where(getattr(model, field) == value).limit(1)).scalars().first()
        return row_to_record(row) if row is not None else None

    def find_all(self, collection: str, field: str, value: Any) -> list[dict]:
        model = MODELS_BY_COLLECTION[collection]
        rows = self._session.execute(select(model).where(getattr(model, field) == value)).scalars().all()
        return [row_to_record(r) for r in rows]


def order_by_clauses(model, sort_by: str, sort_order: SortOrder, dialect_name: str) -> list:
    """ORDER BY (sort_by, sort_order), id ASC with NULLs as the smallest value."""
    clauses = []
    columns = [(model.__table__.c[sort_by], sort_order)]
    if sort_by != "id":
        columns.append((model.__table__.c.id, SortOrder.ASC))

    for column, order in columns:
        expr = column
        collation = BINARY_COLLATIONS.get(dialect_name)
        if collation and isinstance(column.type, String):
            expr = column.collate(collation)
        expr = expr.desc() if order is SortOrder.DESC else expr.asc()
        # MySQL already sorts NULLs lowest and has no NULLS FIRST/LAST syntax
        if dialect_name != "mysql":
            expr = expr.nulls_last() if order is SortOrder.DESC else expr.nulls_first()
        clauses.append(expr)
    return clauses


class SqlRepository(Repository):
    """Generic repository over one table."""

    def __init__(self, adapter: "SqlStoreAdapter", rules: EntityRules):
        self._adapter = adapter
        self.rules = rules
        self._model = MODELS_BY_COLLECTION[rules.collection]

    async def _run(self, operation: str, fn: Callable[[Session], R]) -> R:
        return await self._adapter.execute(operation, self.rules.name, fn)

    async def create(self, payload: BaseModel):
        def work(session: Session) -> dict:
            record = self.rules.new_record(payload)
            validate_record(self.rules, record, SqlRecordSource(session))
            session.add(self._model(**record))
            return record

        entity = self.rules.to_entity(await self._run("create", work))
        await self._after_write(entity)
        return entity

    async def get_by_id(self, entity_id: str):
        def work(session: Session) -> dict | None:
            row = session.get(self._model, entity_id)
            return row_to_record(row) if row is not None else None

        record = await self._run("get", work)
        return self.rules.to_entity(record) if record is not None else None

    async def update(self, entity_id: str, payload: BaseModel):
        def work(session: Session) -> dict:
            row = session.get(self._model, entity_id)
            if row is None:
                raise NotFoundError(self.rules.name, entity_id)
            existing = row_to_record(row)
            record = self.rules.apply_update(existing, payload)
            validate_record(self.rules, record, SqlRecordSource(session), existing)
            for key, value in record.items():
                if key != "id":
                    setattr(row, key, value)
            return record

        entity = self.rules.to_entity(await self._run("update", work))
        await self._after_write(entity)
        return entity

    async def delete(self, entity_id: str) -> bool:
        def work(session: Session) -> dict | None:
            row = session.get(self._model, entity_id)
            if row is None:
                return None
            existing = row_to_record(row)
            plan = plan_delete(self.rules.collection, entity_id, SqlRecordSource(session))
            for collection, record_id, field in plan.nullify:
                model = MODELS_BY_COLLECTION[collection]
                session.execute(
                    update(model)
                    .where(model.id == record_id)
                    .values({field: None})
                    .execution_options(synchronize_session=False)
                )
            for collection, record_id in plan.deletes:
                model = MODELS_BY_COLLECTION[collection]
                session.execute(
                    delete(model).where(model.id == record_id).execution_options(synchronize_session=False)
                )
            return existing

        existing = await self._run("delete", work)
        if existing is None:
            return False
        await self._after_delete(self.rules.to_entity(existing))
        return True

    async def _get_by_field(self, field: str, value: Any):
        def work(session: Session) -> dict | None:
            return SqlRecordSource(session).find_one(self.rules.collection, field, value)

        record = await self._run(f"get_by_{field}", work)
        return self.rules.to_entity(record) if record is not None else None

    def _increment(self, entity_id: str, field: str) -> Callable[[Session], int]:
        column = getattr(self._model, field)

        def work(session: Session) -> int:
            # Atomic at the storage layer: SET n = n + 1
            result = session.execute(
                update(self._model)
                .where(self._model.id == entity_id)
                .values({field: column + 1})
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError(self.rules.name, entity_id)
            return session.execute(select(column).where(self._model.id == entity_id)).scalar_one()

        return work

    def _clause(self, condition: FilterCondition):
        if condition.op == "tag":
            return self._model.tag_index.like(f"%,{escape_like(condition.value)},%", escape="\\")
        column = getattr(self._model, condition.field)
        if condition.op == "is_null":
            return column.is_(None)
        if condition.op == "gte":
            return column >= condition.value
        if condition.op == "lte":
            return column <= condition.value
        return column == condition.value

    def _paged_query(self, criteria: list, sort_by: str, options: PaginationOptions):
        def work(session: Session) -> tuple[list[dict], int]:
            stmt = select(self._model).where(*criteria)
            total = session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
            dialect_name = session.get_bind().dialect.name
            rows = (
                session.execute(
                    stmt.order_by(*order_by_clauses(self._model, sort_by, options.sort_order, dialect_name))
                    .offset(options.offset)
                    .limit(options.limit)
                )
                .scalars()
                .all()
            )
            return [row_to_record(r) for r in rows], total

        return work

    async def search(
        self,
        query: str,
        pagination: PaginationOptions | None = None,
        filters: BaseModel | None = None,
    ) -> Page:
        options = pagination or PaginationOptions()
        sort_by = resolve_sort_field(options, self.rules.sort_fields, self.rules.name)
        normalized = normalize_search_text(query)
        if not normalized:
            return Page.empty(options)
        criteria = [self._model.search_text.like(f"%{escape_like(normalized)}%", escape="\\")]
        criteria.extend(self._clause(c) for c in filter_conditions(filters))
        records, total = await self._run("search", self._paged_query(criteria, sort_by, options))
        return Page.build([self.rules.to_entity(r) for r in records], total, options)

    async def list(
        self,
        pagination: PaginationOptions | None = None,
        filters: BaseModel | None = None,
    ) -> Page:
        options = pagination or PaginationOptions()
        sort_by = resolve_sort_field(options, self.rules.sort_fields, self.rules.name)
        criteria = [self._clause(c) for c in filter_conditions(filters)]
        records, total = await self._run("list", self._paged_query(criteria, sort_by, options))
        return Page.build([self.rules.to_entity(r) for r in records], total, options)


# -----------------------------------------------------------------------------
# Entity repositories
# -----------------------------------------------------------------------------


class SqlPostRepository(SqlRepository, PostRepository):
    def __init__(self, adapter: "SqlStoreAdapter"):
        super().__init__(adapter, POSTS)

    async def increment_view_count(self, post_id: str) -> int:
        return await self._run("increment_view_count", self._increment(post_id, "view_count"))

    async def list_tags(self, status=None):
        def work(session: Session) -> list[list[str]]:
            query = select(PostRow.tags)
            if status is not None:
                query = query.where(PostRow.status == PostStatus(status).value)
            return list(session.execute(query).scalars().all())

        return count_tags(await self._run("list_tags", work))


class SqlDownloadRepository(SqlRepository, DownloadRepository):
    def __init__(self, adapter: "SqlStoreAdapter"):
        super().__init__(adapter, DOWNLOADS)

    async def increment_download_count(self, download_id: str) -> int:
        return await self._run("increment_download_count", self._increment(download_id, "download_count"))

    async def update_rating_aggregate(self, download_id: str) -> Download:
        def work(session: Session) -> dict:
            total = func.sum(ReviewRow.rating)
            reviews = func.count(ReviewRow.id)
            # Half-up to hundredths in integer arithmetic; round() on a float mean drifts at x.xx5.
            hundredths = (
                select((total * 200 + reviews) // (reviews * 2))
                .where(ReviewRow.download_id == download_id)
                .scalar_subquery()
            )
            mean = cast(hundredths, Float) / 100
            count = select(func.count(ReviewRow.id)).where(ReviewRow.download_id == download_id).scalar_subquery()
            result = session.execute(
                update(DownloadRow)
                .where(DownloadRow.id == download_id)
                .values(rating=func.coalesce(mean, 0.0), review_count=count)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError(self.rules.name, download_id)
            session.expire_all()
            return row_to_record(session.get(DownloadRow, download_id))

        record = await self._run("update_rating_aggregate", work)
        record["rating"] = float(record["rating"])
        return self.rules.to_entity(record)


class SqlReviewRepository(SqlRepository, ReviewRepository):
    def __init__(self, adapter: "SqlStoreAdapter", downloads: DownloadRepository):
        super().__init__(adapter, REVIEWS)
        self.downloads = downloads


class SqlCategoryRepository(SqlRepository, CategoryRepository):
    def __init__(self, adapter: "SqlStoreAdapter"):
        super().__init__(adapter, CATEGORIES)

    async def all(self):
        def work(session: Session) -> list[dict]:
            return [row_to_record(r) for r in session.execute(select(self._model)).scalars().all()]

        return [self.rules.to_entity(r) for r in await self._run("all", work)]


class SqlCommentRepository(SqlRepository, CommentRepository):
    def __init__(self, adapter: "SqlStoreAdapter"):
        super().__init__(adapter, COMMENTS)


class SqlUserRepository(SqlRepository, UserRepository):
    def __init__(self, adapter: "SqlStoreAdapter"):
        super().__init__(adapter, USERS)

    async def record_login(self, user_id: str) -> User:
        def work(session: Session) -> dict:
            row = session.get(UserRow, user_id)
            if row is None:
                raise NotFoundError(self.rules.name, user_id)
            row.last_login_at = utcnow()
            return row_to_record(row)

        return self.rules.to_entity(await self._run("record_login", work))


class SqlSeoMetaRepository(SqlRepository, SeoMetaRepository):
    def __init__(self, adapter: "SqlStoreAdapter"):
        super().__init__(adapter, SEO_META)


class SqlAnalyticsRepository(SqlRepository, AnalyticsRepository):
    def __init__(self, adapter: "SqlStoreAdapter"):
        super().__init__(adapter, ANALYTICS_EVENTS)

    async def popular_content(self, event_type, limit=10, since=None):
        event_type = EventType(event_type).value
        since = naive_utc(since) if since is not None else None

        def work(session: Session) -> list[tuple[str, int]]:
            content_id = func.coalesce(AnalyticsEventRow.post_id, AnalyticsEventRow.download_id)
            stmt = (
                select(content_id, func.count(AnalyticsEventRow.id))
                .where(AnalyticsEventRow.event_type == event_type, content_id.is_not(None))
                .group_by(content_id)
            )
            if since is not None:
                stmt = stmt.where(AnalyticsEventRow.created_at >= since)
            return [(row[0], row[1]) for row in session.execute(stmt).all()]

        # Ranked in Python so ties break in code-point order on every dialect
        return rank_content(Counter(dict(await self._run("popular_content", work))), limit)


class SqlNewsletterRepository(SqlRepository, NewsletterRepository):
    def __init__(self, adapter: "SqlStoreAdapter"):
        super().__init__(adapter, NEWSLETTER_SUBSCRIBERS)


# -----------------------------------------------------------------------------
# Adapter
# -----------------------------------------------------------------------------


class SqlStoreAdapter(StorageAdapter):
    """
    Relational backend (PostgreSQL in production, SQLite in tests).

    initialize() is the readiness step the selector requires before making
    this adapter active: it builds the pooled engine on first use, then
    proves a round-trip with SELECT 1. Calling it again re-checks the
    existing engine.
    """

    name = "durable"
    is_persistent = True
    supports_transactions = True

    def __init__(
        self,
        database_url: str,
        pool_size: int = 5,
        connect_timeout_seconds: float | None = None,
        auto_create_tables: bool = False,
    ):
        self._database_url = database_url
        self._pool_size = pool_size
        self._connect_timeout_seconds = connect_timeout_seconds
        self._auto_create_tables = auto_create_tables
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

        self.posts = SqlPostRepository(self)
        self.downloads = SqlDownloadRepository(self)
        self.reviews = SqlReviewRepository(self, self.downloads)
        self.categories = SqlCategoryRepository(self)
        self.comments = SqlCommentRepository(self)
        self.users = SqlUserRepository(self)
        self.seo = SqlSeoMetaRepository(self)
        self.analytics = SqlAnalyticsRepository(self)
        self.newsletter = SqlNewsletterRepository(self)

    @property
    def is_ready(self) -> bool:
        return self._session_factory is not None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    async def initialize(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            if self._engine is None:
                engine = await loop.run_in_executor(None, self._connect)
                self._engine = engine
                self._session_factory = make_session_factory(engine)
                logger.info(
                    "Durable store initialized",
                    extra={"event": "durable_initialized", "storage_type": self.name},
                )
            else:
                await loop.run_in_executor(None, self._ping, self._engine)
        except Exception as e:
            raise InitializationError(f"Durable store initialization failed: {type(e).__name__}: {e}") from e

    def _connect(self) -> Engine:
        engine = create_db_engine(
            self._database_url,
            pool_size=self._pool_size,
            connect_timeout_seconds=self._connect_timeout_seconds,
        )
        try:
            self._ping(engine)
            if self._auto_create_tables:
                init_db(engine)
        except Exception:
            engine.dispose()
            raise
        return engine

    @staticmethod
    def _ping(engine: Engine) -> None:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    async def close(self) -> None:
        engine, self._engine, self._session_factory = self._engine, None, None
        if engine is not None:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, engine.dispose)

    async def execute(self, operation: str, entity: str, fn: Callable[[Session], R]) -> R:
        """
        Run fn(session) in the default executor and commit.

        The session is rolled back and closed if fn or the commit raises.
        """
        factory = self._session_factory
        if factory is None:
            raise StoreUnavailableError("Durable store is not initialized")

        def work() -> R:
            with log_storage_operation(self.name, operation, entity):
                with factory() as session:
                    result = fn(session)
                    session.commit()
                    return result

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, work)
        except IntegrityError as e:
            raise ValidationError(f"{entity} violates a uniqueness or reference constraint") from e
        except _UNAVAILABLE_ERRORS as e:
            raise StoreUnavailableError(f"Durable store unavailable during {operation}: {e}") from e
        except DBAPIError as e:
            if e.connection_invalidated:
                raise StoreUnavailableError(f"Durable store connection lost during {operation}: {e}") from e
            raise

    async def run_in_transaction(self, fn: Callable[[Session], R]) -> R:
        """Run several statements atomically: fn(session) commits as one unit or not at all."""
        return await self.execute("transaction", "session", fn)
