"""
Table query builder over the PostgREST endpoint.

A builder accumulates a QueryDescriptor and sends exactly one request, the first
time it is awaited (or execute() is called). Nothing is sent before that and a
second await returns the same result.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx

from ostazy.database.http import OBJECT_ACCEPT, RequestHelper, decode_body
from ostazy.database.schemas import APIResponse

logger = logging.getLogger(__name__)

NO_ROWS_CODE = "PGRST116"

# PostgREST syntax characters that must reach the server unescaped
QUERY_SAFE = ",.()\"*:@"


class Operator(str, Enum):
    EQ = "eq"
    IN = "in"


def format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class Filter:
    column: str
    operator: Operator
    value: Any

    def serialize(self) -> Tuple[str, str]:
        if self.operator is Operator.IN:
            if isinstance(self.value, (list, tuple)):
                values = ",".join(f'"{format_value(v)}"' for v in self.value)
            else:
                values = format_value(self.value)
            return self.column, f"in.({values})"
        return self.column, f"{self.operator.value}.{format_value(self.value)}"


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True

    def serialize(self) -> Tuple[str, str]:
        return "order", f"{self.column}.{'asc' if self.ascending else 'desc'}"


@dataclass
class QueryDescriptor:
    table: str
    method: str = "GET"
    select: Optional[str] = None
    count: Optional[str] = None
    filters: List[Filter] = field(default_factory=list)
    order: Optional[Order] = None
    limit: Optional[int] = None
    body: Any = None
    single: bool = False
    maybe_single: bool = False

    def query_params(self) -> List[Tuple[str, str]]:
        """Serialized in a fixed order: select, count, filters, order, limit."""
        params = []
        if self.select is not None:
            params.append(("select", self.select))
        if self.count:
            params.append(("count", self.count))
        params.extend(f.serialize() for f in self.filters)
        if self.order is not None:
            params.append(self.order.serialize())
        if self.limit is not None:
            params.append(("limit", str(self.limit)))
        return params

    def query_string(self) -> str:
        return "&".join(
            f"{quote(key, safe=QUERY_SAFE)}={quote(value, safe=QUERY_SAFE)}" for key, value in self.query_params()
        )

    def path(self) -> str:
        query = self.query_string()
        return f"/rest/v1/{self.table}" + (f"?{query}" if query else "")


def parse_count(response: httpx.Response) -> Optional[int]:
    """Total from a `Content-Range: 0-9/42` header."""
    content_range = response.headers.get("content-range", "")
    _, _, total = content_range.partition("/")
    return int(total) if total.isdigit() else None


class RequestBuilder:
    def __init__(self, helper: RequestHelper, descriptor: QueryDescriptor, headers: Optional[Dict[str, str]] = None):
        self.helper = helper
        self.descriptor = descriptor
        self.extra_headers = dict(headers or {})
        self._pending: Optional[asyncio.Task] = None

    def eq(self, column: str, value: Any) -> "RequestBuilder":
        self.descriptor.filters.append(Filter(column, Operator.EQ, value))
        return self

    def in_(self, column: str, values: Sequence[Any]) -> "RequestBuilder":
        self.descriptor.filters.append(Filter(column, Operator.IN, values))
        return self

    def order(self, column: str, ascending: bool = True) -> "RequestBuilder":
        self.descriptor.order = Order(column, ascending)
        return self

    def limit(self, count: int) -> "RequestBuilder":
        self.descriptor.limit = count
        return self

    def single(self) -> "RequestBuilder":
        """Expect exactly one row; zero rows is an error."""
        self.descriptor.single = True
        self.descriptor.limit = 1
        self.extra_headers["Accept"] = OBJECT_ACCEPT
        return self

    def maybe_single(self) -> "RequestBuilder":
        """Expect at most one row; zero rows yields data=None without error."""
        self.descriptor.maybe_single = True
        self.descriptor.limit = 1
        self.extra_headers["Accept"] = OBJECT_ACCEPT
        return self

    async def execute(self) -> APIResponse:
        d = self.descriptor
        if d.method in ("PATCH", "DELETE") and not d.filters:
            raise ValueError(f"{d.method} on {d.table} requires a filter, call .eq() first")
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._dispatch())
        return await self._pending

    def __await__(self):
        return self.execute().__await__()

    async def _dispatch(self) -> APIResponse:
        d = self.descriptor
        headers = self.helper.headers()
        headers.update(self.extra_headers)
        response = await self.helper.request(d.method, d.path(), headers, json=d.body)

        if d.method == "DELETE" and response.is_success:
            return APIResponse(data=None, error=None)

        body = decode_body(response)
        if response.is_success:
            count = parse_count(response) if d.count else None
            return APIResponse(data=body, error=None, count=count)

        no_rows = response.status_code == 406 or (isinstance(body, dict) and body.get("code") == NO_ROWS_CODE)
        if d.maybe_single and (no_rows or response.status_code == 404):
            return APIResponse(data=None, error=None)
        if d.single and response.status_code == 406:
            body = {"code": NO_ROWS_CODE, "message": "Row not found"}

        empty = None if (d.single or d.maybe_single or d.method == "DELETE") else []
        return APIResponse(data=empty, error=body)


class QueryBuilder:
    """Entry point returned by client.from_(table)."""

    def __init__(self, helper: RequestHelper, table: str):
        self.helper = helper
        self.table = table

    def select(self, columns: str = "*", count: Optional[str] = None) -> RequestBuilder:
        descriptor = QueryDescriptor(self.table, "GET", select=columns, count=count)
        headers = {"Prefer": f"count={count}"} if count else None
        return RequestBuilder(self.helper, descriptor, headers)

    def insert(self, data: Any) -> "InsertBuilder":
        rows = data if isinstance(data, list) else [data]
        descriptor = QueryDescriptor(self.table, "POST", body=rows)
        return InsertBuilder(self.helper, descriptor, {"Prefer": "return=representation"})

    def update(self, data: Dict[str, Any]) -> RequestBuilder:
        descriptor = QueryDescriptor(self.table, "PATCH", body=data)
        return RequestBuilder(self.helper, descriptor, {"Prefer": "return=representation"})

    def delete(self) -> RequestBuilder:
        return RequestBuilder(self.helper, QueryDescriptor(self.table, "DELETE"))


class InsertBuilder(RequestBuilder):
    async def _dispatch(self) -> APIResponse:
        result = await super()._dispatch()
        if result.error:
            logger.error(f"Insert error in {self.descriptor.table}: {result.error}")
        else:
            logger.info(f"Inserted into {self.descriptor.table}")
        return result
