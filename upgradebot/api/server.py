from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from upgradebot.ledger import Ledger
from upgradebot.upgrader.deadline import RunHandle
from upgradebot.upgrader.steps import RunParams, new_params
from upgradebot.util.json import error_response


class RunStarter:
    def submit(self, params: RunParams, timeout_ms: int | None = None) -> RunHandle:
        raise NotImplementedError


class Server:
    def __init__(
        self,
        ledger: Ledger,
        auth_token: str,
        runner: Optional[RunStarter] = None,
        default_branch: str = "master",
    ) -> None:
        self._ledger = ledger
        self._auth_token = auth_token
        self._runner = runner
        self._default_branch = default_branch
        self._app = FastAPI(title="upgradebot")
        self._configure_middleware()
        self._configure_routes()

    def handler(self) -> FastAPI:
        return self._app

    def _configure_middleware(self) -> None:
        self._app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

        @self._app.middleware("http")
        async def recover_middleware(request: Request, call_next):
            try:
                return await call_next(request)
            except Exception as err:
                print("http panic", {"path": request.url.path, "err": str(err)})
                return Response(status_code=500)

        @self._app.middleware("http")
        async def auth_middleware(request: Request, call_next):
            if not self._auth_token.strip() or request.url.path == "/healthz":
                return await call_next(request)
            auth = request.headers.get("authorization") or ""
            prefix = "Bearer "
            if not auth.startswith(prefix) or auth[len(prefix) :].strip() != self._auth_token:
                return Response(status_code=401)
            return await call_next(request)

        @self._app.middleware("http")
        async def logging_middleware(request: Request, call_next):
            start = time.time()
            response = await call_next(request)
            duration = int((time.time() - start) * 1000)
            print(
                "http",
                {
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": duration,
                },
            )
            return response

    def _configure_routes(self) -> None:
        @self._app.get("/healthz")
        async def healthz():
            return {"ok": True}

        @self._app.post("/v1/upgrades")
        async def start_upgrade(request: Request):
            if not self._runner:
                return error_response("runner not configured", 503)
            try:
                body = await _parse_json(request)
                options = body.get("options") if isinstance(body.get("options"), dict) else body
                params = new_params(
                    owner=_text(options.get("owner")),
                    repo=_text(options.get("repo")),
                    branch=_text(options.get("branch")),
                    version=_text(options.get("version")),
                    run_id=_text(options.get("id") or options.get("run_id")),
                    default_branch=self._default_branch,
                )
            except ValueError as err:
                return error_response(str(err), 400)
            print("upgrade requested", {"owner": params.owner, "repo": params.repo, "run_id": params.run_id})
            try:
                url = await _await_run(self._runner.submit(params))
            except Exception as err:
                return error_response(str(err), 500)
            return {"pr": url}

        @self._app.post("/v1/upgrades/status")
        async def upgrade_status(request: Request):
            try:
                body = await _parse_json(request)
            except ValueError:
                return error_response("invalid json", 400)
            return self._status_body(_text(body.get("id")))

        @self._app.get("/v1/upgrades/{run_id}")
        async def get_upgrade(run_id: str):
            return self._status_body(run_id)

        @self._app.get("/v1/upgrades")
        async def list_upgrades(owner: str = ""):
            return [record.to_dict() for record in self._ledger.list(owner or None)]

    def _status_body(self, run_id: str) -> Dict[str, Any]:
        record = self._ledger.get(run_id)
        return {"data": record.to_dict() if record else None}


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


async def _parse_json(request: Request) -> dict:
    body = await request.body()
    try:
        data = json.loads(body or b"{}")
    except Exception as err:
        raise ValueError("invalid json") from err
    if not isinstance(data, dict):
        raise ValueError("json body must be an object")
    return data


async def _await_run(handle: RunHandle) -> Optional[str]:
    run = asyncio.wrap_future(handle.future)
    # Abandoned runs may still fail after the deadline.
    run.add_done_callback(lambda fut: fut.cancelled() or fut.exception())
    try:
        return await asyncio.wait_for(asyncio.shield(run), handle.timeout)
    except asyncio.TimeoutError:
        handle.expire()
        return None
