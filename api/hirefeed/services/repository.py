from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any
from uuid import uuid4

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from hirefeed.core.config import get_settings
from hirefeed.services.store import (
    ArrayAppend,
    ArrayUnion,
    FIELD_TRANSFORMS,
    InMemoryDocumentStore,
    StoreConflictError,
    StoredDocument,
    StoreNotFoundError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

UNAVAILABLE_ERRORS = (OSError, TimeoutError, pg_exc.PostgresError, pg_exc.InterfaceError)

SCHEMA_SQL = """
create table if not exists documents (
  collection text not null,
  id text not null,
  seq bigserial not null,
  data jsonb not null default '{}'::jsonb,
  created_at timestamptz not null default now(),
  updated_at timestamptz not null default now(),
  primary key (collection, id)
);
create index if not exists documents_data_gin_idx on documents using gin (data jsonb_path_ops);
create index if not exists documents_collection_seq_idx on documents (collection, seq);
"""


class PostgresDocumentStore:
    """Document store backed by one ``jsonb`` row per document.

    Every ``merge_update`` is a single ``update`` statement, so array
    transforms are evaluated against the latest committed row and concurrent
    writers to the same document never lose each other's additions.
    """

    supports_array_transforms = True

    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        auto_migrate: bool = True,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.auto_migrate = auto_migrate
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def get(self, collection: str, document_id: str) -> StoredDocument | None:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                select id, data
                from documents
                where collection = $1
                  and id = $2
                """,
                collection,
                document_id,
            )
        except UNAVAILABLE_ERRORS as exc:
            raise StoreUnavailableError("document read failed") from exc
        if row is None:
            return None
        return self._row_to_document(row)

    async def query(
        self,
        collection: str,
        *,
        where: dict[str, Any] | None = None,
        starts_with: dict[str, str] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[StoredDocument]:
        sql, params = build_query(
            collection,
            where=where,
            starts_with=starts_with,
            order_by=order_by,
            descending=descending,
            limit=limit,
            offset=offset,
        )
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(sql, *params)
        except UNAVAILABLE_ERRORS as exc:
            raise StoreUnavailableError("document query failed") from exc
        return [self._row_to_document(row) for row in rows]

    async def create(self, collection: str, data: dict[str, Any], document_id: str | None = None) -> str:
        new_id = document_id or uuid4().hex
        pool = await self._get_pool()
        try:
            await pool.execute(
                """
                insert into documents (collection, id, data)
                values ($1, $2, $3::jsonb)
                """,
                collection,
                new_id,
                json.dumps(data),
            )
        except pg_exc.UniqueViolationError as exc:
            raise StoreConflictError(f"document already exists: {collection}/{new_id}") from exc
        except UNAVAILABLE_ERRORS as exc:
            raise StoreUnavailableError("document insert failed") from exc
        return new_id

    async def merge_update(self, collection: str, document_id: str, fields: dict[str, Any]) -> dict[str, int]:
        sql, params = build_merge_update(collection, document_id, fields)
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(sql, *params)
        except UNAVAILABLE_ERRORS as exc:
            raise StoreUnavailableError("document update failed") from exc
        if row is None:
            raise StoreNotFoundError(f"document not found: {collection}/{document_id}")
        transformed = [field for field, value in fields.items() if isinstance(value, FIELD_TRANSFORMS)]
        return {field: row[f"change_{index}"] for index, field in enumerate(transformed)}

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise StoreUnavailableError("HF_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            if self.auto_migrate:
                async with pool.acquire() as conn:
                    await conn.execute(SCHEMA_SQL)
            self._pool = pool
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise StoreUnavailableError("database unavailable") from exc

    @staticmethod
    def _row_to_document(row: asyncpg.Record) -> StoredDocument:
        data = row["data"]
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("undecodable document id=%s", row["id"])
                data = {}
        if not isinstance(data, dict):
            data = {}
        return StoredDocument(id=row["id"], data=data)


# Epoch seconds render in the same fixed-width form as stored ISO strings so a
# field holding both kinds still orders by instant. Out-of-range numbers sort as
# missing. Strings are compared bytewise, so non-ISO strings are not re-parsed.
ORDER_VALUE_SQL = (
    "(case jsonb_typeof(data -> {ref}) "
    "when 'number' then case when (data ->> {ref})::double precision between 0 and 253402300799 "
    "then to_char(to_timestamp((data ->> {ref})::double precision) at time zone 'UTC', "
    "'YYYY-MM-DD\"T\"HH24:MI:SS.US\"Z\"') end "
    "else data ->> {ref} end) collate \"C\""
)


def build_query(
    collection: str,
    *,
    where: dict[str, Any] | None = None,
    starts_with: dict[str, str] | None = None,
    order_by: str | None = None,
    descending: bool = False,
    limit: int | None = None,
    offset: int = 0,
) -> tuple[str, list[Any]]:
    params: list[Any] = [collection, json.dumps(where or {})]

    def bind(value: Any) -> str:
        params.append(value)
        return f"${len(params)}"

    conditions = ["collection = $1", "data @> $2::jsonb"]
    for field, prefix in (starts_with or {}).items():
        conditions.append(f"data ->> {bind(field)}::text like {bind(_like_prefix(prefix))}::text")

    if order_by is None:
        order_clause = "seq asc"
    else:
        direction = "desc" if descending else "asc"
        order_value = ORDER_VALUE_SQL.format(ref=f"{bind(order_by)}::text")
        order_clause = f"{order_value} {direction} nulls last, seq asc"

    where_clause = " and ".join(conditions)
    sql = f"""
        select id, data
        from documents
        where {where_clause}
        order by {order_clause}
        limit {bind(limit)}::bigint
        offset {bind(max(0, offset))}::bigint
        """
    return sql, params


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}%"


def build_merge_update(collection: str, document_id: str, fields: dict[str, Any]) -> tuple[str, list[Any]]:
    """Render a single-statement shallow merge with optional array transforms.

    The row is locked and read as ``previous_row`` in the same statement, so
    ``change_<n>`` in the returned row is the exact length change of the n-th
    transformed field caused by this write.
    """
    params: list[Any] = [collection, document_id]

    def bind(value: Any) -> str:
        params.append(value)
        return f"${len(params)}"

    expression = "data"
    patch: dict[str, Any] = {}
    changes: list[str] = []
    for field, value in fields.items():
        if not isinstance(value, FIELD_TRANSFORMS):
            patch[field] = value
            continue

        field_ref = f"{bind(field)}::text"
        values_ref = f"{bind(json.dumps(list(value.values)))}::jsonb"
        current = (
            f"(case when jsonb_typeof(data -> {field_ref}) = 'array' "
            f"then data -> {field_ref} else '[]'::jsonb end)"
        )
        if isinstance(value, ArrayAppend):
            updated = f"{current} || {values_ref}"
        elif isinstance(value, ArrayUnion):
            if value.key is None:
                match = "e.value = v.value"
            else:
                key_ref = f"{bind(value.key)}::text"
                match = f"e.value -> {key_ref} = v.value -> {key_ref}"
            updated = (
                f"{current} || coalesce(("
                f"select jsonb_agg(v.value order by v.ordinality) "
                f"from jsonb_array_elements({values_ref}) with ordinality as v(value, ordinality) "
                f"where not exists (select 1 from jsonb_array_elements({current}) as e(value) where {match})"
                f"), '[]'::jsonb)"
            )
        else:
            updated = (
                f"coalesce(("
                f"select jsonb_agg(e.value order by e.ordinality) "
                f"from jsonb_array_elements({current}) with ordinality as e(value, ordinality) "
                f"where not exists (select 1 from jsonb_array_elements({values_ref}) as r(value) where r.value = e.value)"
                f"), '[]'::jsonb)"
            )
        expression = f"jsonb_set({expression}, array[{field_ref}], {updated}, true)"
        previous = (
            f"(case when jsonb_typeof(previous_row.previous -> {field_ref}) = 'array' "
            f"then previous_row.previous -> {field_ref} else '[]'::jsonb end)"
        )
        changes.append(
            f"jsonb_array_length(d.data -> {field_ref}) - jsonb_array_length({previous}) as change_{len(changes)}"
        )

    if patch:
        expression = f"({expression}) || {bind(json.dumps(patch))}::jsonb"

    returning = ", ".join(["d.id", *changes])

    sql = f"""
        update documents as d
        set data = {expression},
            updated_at = now()
        from (
          select data as previous
          from documents
          where collection = $1
            and id = $2
          for update
        ) as previous_row
        where d.collection = $1
          and d.id = $2
        returning {returning}
        """
    return sql, params


@lru_cache
def get_store() -> PostgresDocumentStore | InMemoryDocumentStore:
    settings = get_settings()
    if settings.store_backend == "memory":
        logger.info("using in-memory document store environment=%s", settings.environment)
        return InMemoryDocumentStore()
    return PostgresDocumentStore(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        auto_migrate=settings.database_auto_migrate,
    )
