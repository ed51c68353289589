# /plexrelay.py
# PlexRelay main application entry point
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import argparse
import html
import sys
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from starlette.middleware.cors import CORSMiddleware

from _logging import BLUE, DIM, GREEN, RESET, configure as configure_logging, log as LOG
from api.authAPI import router as auth_router
from api.configAPI import router as config_router, status_snapshot
from pr_platform.config_base import load_config, redirect_uri, token_path, validate_config, webhook_url
from pr_platform.http import make_session
from pr_platform.token_store import TokenStore
from providers.auth._auth_TRAKT import PROVIDER as TRAKT_AUTH, _TraktProvider
from providers.scrobble.catalog import CatalogResolver
from providers.scrobble.dispatcher import ScrobbleDispatcher
from providers.webhooks._user_filter import AuthorizationPolicy
from providers.webhooks.plextrakt import ScrobbleRelay, handle_webhook

CURRENT_VERSION = "v1.0.0"

_BOOT = LOG.child("BOOT")


def _c(text: str, color: str) -> str:
    return f"{color}{text}{RESET}" if LOG.use_color else text


def build_relay(cfg: dict[str, Any], store: TokenStore, auth: _TraktProvider) -> ScrobbleRelay:
    trk = cfg.get("trakt") or {}
    client_id = str(trk.get("client_id") or "")
    api_url = str(trk.get("api_url") or "")
    timeout = float(trk.get("timeout") or 15)

    resolver = CatalogResolver(make_session(retries=1), client_id, api_url=api_url, timeout=timeout)
    dispatcher = ScrobbleDispatcher(
        make_session(retries=0),
        store,
        lambda stale: auth.refresh(store, stale, cfg),
        client_id,
        api_url=api_url,
        timeout=timeout,
        app_version=CURRENT_VERSION,
    )
    return ScrobbleRelay(resolver, dispatcher, store)


def _webhook_info_page(cfg: dict[str, Any]) -> str:
    url = html.escape(webhook_url(cfg))
    return f"""<h1>Plex Webhook Endpoint</h1>
<p><strong>Status:</strong> ready to receive webhooks</p>
<p><strong>URL:</strong> {url}</p>
<p><strong>Method:</strong> POST (multipart/form-data)</p>
<h3>Setup in Plex</h3>
<ol>
  <li>Plex Web: Settings, Webhooks</li>
  <li>Add webhook: {url}</li>
  <li>Save and play something</li>
</ol>"""


def create_app(
    cfg: dict[str, Any] | None = None,
    *,
    store: TokenStore | None = None,
    auth: _TraktProvider | None = None,
    relay: ScrobbleRelay | None = None,
) -> FastAPI:
    cfg = cfg if cfg is not None else load_config()
    store = store if store is not None else TokenStore(token_path(cfg))
    auth = auth if auth is not None else TRAKT_AUTH
    relay = relay if relay is not None else build_relay(cfg, store, auth)
    policy = AuthorizationPolicy.from_config(cfg)

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        store.load()
        for w in validate_config(cfg):
            _BOOT.warn(w)
        if not policy.configured:
            _BOOT.warn("no user filter configured; every webhook will be rejected")
        else:
            _BOOT.info(f"user filter: {policy.describe()}")
        yield

    app = FastAPI(title="PlexRelay", version=CURRENT_VERSION.lstrip("v"), lifespan=_lifespan)
    app.state.cfg = cfg
    app.state.store = store
    app.state.auth = auth
    app.state.relay = relay
    app.state.policy = policy

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[],
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=[],
    )

    debug = bool((cfg.get("runtime") or {}).get("debug"))

    @app.middleware("http")
    async def conditional_access_logger(request: Request, call_next):
        t0 = time.time()
        try:
            response = await call_next(request)
        except Exception:
            _BOOT.error(f'"{request.method} {request.url.path}" raised')
            raise
        status = getattr(response, "status_code", 0) or 0
        if status >= 500 or (debug and status >= 400):
            dt_ms = int((time.time() - t0) * 1000)
            client = request.client
            host = f"{client.host}:{client.port}" if client else "-"
            LOG(f'{host} - "{request.method} {request.url.path}" {status} ({dt_ms} ms)', level="WARN", module="HTTP")
        return response

    webhook_path = str((cfg.get("server") or {}).get("webhook_path") or "/webhook")

    async def plex_webhook(request: Request, background: BackgroundTasks) -> PlainTextResponse:
        body = await request.body()
        outcome = await handle_webhook(body, request.headers.get("content-type"), policy)
        if outcome.intent is not None:
            # Plex gets its 200 now; Trakt delivery runs after the response is sent.
            background.add_task(relay.deliver, outcome.intent)
        return PlainTextResponse(outcome.message, status_code=outcome.status)

    def plex_webhook_info() -> HTMLResponse:
        return HTMLResponse(_webhook_info_page(cfg))

    app.add_api_route(webhook_path, plex_webhook, methods=["POST"], tags=["webhook"])
    app.add_api_route(webhook_path, plex_webhook_info, methods=["GET"], tags=["webhook"])
    app.include_router(auth_router)
    app.include_router(config_router)
    return app


def _print_status(cfg: dict[str, Any], store: TokenStore) -> None:
    snap = status_snapshot(cfg, store.load().authenticated)
    print("Status:")
    print(f"  Trakt token:   {'present' if snap['authenticated'] else 'missing'}")
    print(f"  Webhook URL:   {snap['webhook_url']}")
    print(f"  Callback URL:  {snap['callback_url']}")
    print(f"  User filter:   {snap['user_filter']}")
    for w in snap["warnings"]:
        print(f"  ! {w}")


def _serve(cfg: dict[str, Any], store: TokenStore) -> None:
    srv = cfg.get("server") or {}
    host = str(srv.get("host") or "0.0.0.0")
    port = int(srv.get("port") or 3000)
    runtime = cfg.get("runtime") or {}

    _BOOT.info(_c(f"PlexRelay {CURRENT_VERSION} running:", BLUE))
    _BOOT.info(f"  {_c('Bind:', DIM)}     {_c(f'{host}:{port}', GREEN)}")
    _BOOT.info(f"  {_c('Webhook:', DIM)}  {_c(webhook_url(cfg), GREEN)}")
    _BOOT.info(f"  {_c('Callback:', DIM)} {_c(redirect_uri(cfg), GREEN)}")
    _BOOT.info(f"  {_c('Tokens:', DIM)}   {store.path} (JSON)")

    app = create_app(cfg, store=store)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=("debug" if runtime.get("debug") else "warning"),
        access_log=bool(runtime.get("debug_http")),
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="plexrelay", description="Relay Plex playback webhooks to Trakt scrobbles.")
    parser.add_argument("command", nargs="?", default="listen", choices=("listen", "auth", "status"))
    args = parser.parse_args(argv)

    cfg = load_config()
    configure_logging(bool((cfg.get("runtime") or {}).get("debug")))
    store = TokenStore(token_path(cfg))

    if args.command == "status":
        _print_status(cfg, store)
        return 0

    missing = [p for p in validate_config(cfg) if p.startswith("missing ")]
    if missing:
        for p in missing:
            _BOOT.error(p)
        return 1

    if args.command == "auth":
        print("Open this URL to authorize PlexRelay on Trakt:")
        print(f"  {TRAKT_AUTH.authorize_url(cfg)}")
        print("Waiting for the callback; stop with Ctrl+C once it reports success.")

    _serve(cfg, store)
    return 0


if __name__ == "__main__":
    sys.exit(main())
