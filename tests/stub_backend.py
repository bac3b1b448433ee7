"""In-memory stand-in for the auth, REST and storage endpoints, served as an ASGI app."""

import json
import uuid
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI, Request, Response
from starlette.responses import JSONResponse

OBJECT_ACCEPT = "application/vnd.pgrst.object+json"


class StubBackend:
    def __init__(self):
        self.tables: Dict[str, List[dict]] = {}
        self.users: Dict[str, dict] = {}
        self.tokens: Dict[str, dict] = {}
        self.objects: Dict[str, bytes] = {}
        self.requests: List[dict] = []
        self.overrides: Dict[Tuple[str, str], Tuple[int, Any]] = {}
        self.app = self._build_app()

    # Fixture helpers

    def add_user(self, email: str, password: str, **fields) -> dict:
        user = {"id": fields.pop("id", str(uuid.uuid4())), "email": email, "user_metadata": {}, **fields}
        self.users[email] = {"password": password, "user": user}
        return user

    def issue_token(self, user: dict) -> str:
        token = f"token-{uuid.uuid4().hex}"
        self.tokens[token] = user
        return token

    def override(self, method: str, path: str, status: int, body: Any = None) -> None:
        self.overrides[(method, path)] = (status, body)

    def requests_to(self, path: str, method: Optional[str] = None) -> List[dict]:
        return [r for r in self.requests if r["path"] == path and (method is None or r["method"] == method)]

    # Internals

    async def _record(self, request: Request) -> Optional[Response]:
        body = await request.body()
        self.requests.append({
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query,
            "params": list(request.query_params.multi_items()),
            "headers": dict(request.headers),
            "body": body,
        })
        override = self.overrides.get((request.method, request.url.path))
        if override is not None:
            status, payload = override
            if payload is None:
                return Response(status_code=status)
            return JSONResponse(payload, status_code=status)
        return None

    def _bearer_user(self, request: Request) -> Optional[dict]:
        auth = request.headers.get("authorization", "")
        if not auth.startswith("Bearer "):
            return None
        return self.tokens.get(auth[len("Bearer "):])

    @staticmethod
    def _matches(row: dict, column: str, expr: str) -> bool:
        op, _, value = expr.partition(".")
        actual = row.get(column)
        actual = "null" if actual is None else str(actual).lower() if isinstance(actual, bool) else str(actual)
        if op == "eq":
            return actual == value
        if op == "in":
            values = [v.strip().strip('"') for v in value.strip("()").split(",")]
            return actual in values
        return True

    def _filter_rows(self, table: str, params: List[Tuple[str, str]]) -> List[dict]:
        rows = self.tables.get(table, [])
        for key, value in params:
            if key in ("select", "count", "order", "limit"):
                continue
            rows = [r for r in rows if self._matches(r, key, value)]
        return rows

    def _build_app(self) -> FastAPI:
        app = FastAPI()
        stub = self

        @app.post("/auth/v1/signup")
        async def signup(request: Request):
            if (early := await stub._record(request)) is not None:
                return early
            payload = json.loads(await request.body())
            if payload["email"] in stub.users:
                return JSONResponse({"code": 422, "msg": "User already registered"}, status_code=422)
            user = stub.add_user(payload["email"], payload["password"], user_metadata=payload.get("data") or {})
            return user

        @app.post("/auth/v1/token")
        async def token(request: Request):
            if (early := await stub._record(request)) is not None:
                return early
            payload = json.loads(await request.body())
            account = stub.users.get(payload.get("email"))
            if account is None or account["password"] != payload.get("password"):
                return JSONResponse(
                    {"error": "invalid_grant", "error_description": "Invalid login credentials"},
                    status_code=400,
                )
            return {
                "access_token": stub.issue_token(account["user"]),
                "refresh_token": uuid.uuid4().hex,
                "token_type": "bearer",
                "expires_in": 3600,
                "user": account["user"],
            }

        @app.post("/auth/v1/logout")
        async def logout(request: Request):
            if (early := await stub._record(request)) is not None:
                return early
            auth = request.headers.get("authorization", "")
            stub.tokens.pop(auth[len("Bearer "):], None)
            return Response(status_code=204)

        @app.get("/auth/v1/user")
        async def user(request: Request):
            if (early := await stub._record(request)) is not None:
                return early
            current = stub._bearer_user(request)
            if current is None:
                return JSONResponse({"code": 401, "msg": "invalid JWT"}, status_code=401)
            return current

        @app.api_route("/rest/v1/{table}", methods=["GET", "POST", "PATCH", "DELETE"])
        async def rest(table: str, request: Request):
            if (early := await stub._record(request)) is not None:
                return early
            params = list(request.query_params.multi_items())

            if request.method == "POST":
                rows = json.loads(await request.body())
                for row in rows:
                    row.setdefault("id", str(uuid.uuid4()))
                    stub.tables.setdefault(table, []).append(row)
                return JSONResponse(rows, status_code=201)

            matched = stub._filter_rows(table, params)

            if request.method == "PATCH":
                changes = json.loads(await request.body())
                for row in matched:
                    row.update(changes)
                return matched

            if request.method == "DELETE":
                stub.tables[table] = [r for r in stub.tables.get(table, []) if r not in matched]
                return Response(status_code=204)

            query = dict(params)
            if "order" in query:
                column, _, direction = query["order"].rpartition(".")
                matched = sorted(matched, key=lambda r: str(r.get(column, "")), reverse=direction == "desc")
            total = len(matched)
            if "limit" in query:
                matched = matched[:int(query["limit"])]
            if query.get("select", "*") != "*":
                columns = [c.strip() for c in query["select"].split(",")]
                matched = [{c: r.get(c) for c in columns} for r in matched]

            if request.headers.get("accept") == OBJECT_ACCEPT:
                if len(matched) != 1:
                    return JSONResponse(
                        {"code": "PGRST116", "message": "JSON object requested, multiple (or no) rows returned"},
                        status_code=406,
                    )
                return matched[0]

            headers = {}
            if "count" in query:
                headers["Content-Range"] = f"0-{max(len(matched) - 1, 0)}/{total}"
            return JSONResponse(matched, headers=headers)

        @app.post("/storage/v1/object/{bucket}/{path:path}")
        async def upload(bucket: str, path: str, request: Request):
            if (early := await stub._record(request)) is not None:
                return early
            if stub._bearer_user(request) is None:
                return JSONResponse({"statusCode": "403", "error": "Unauthorized", "message": "invalid signature"}, status_code=403)
            stub.objects[f"{bucket}/{path}"] = stub.requests[-1]["body"]
            return {"Key": f"{bucket}/{path}"}

        return app
