from __future__ import annotations

import argparse
import logging
import time
import uuid
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Mapping

import uvicorn
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, Response

from .auth import check_bearer
from .config import GatewayConfig, load_gateway_config
from .errors import GateError
from .gate import CertGate, CertGatePolicy
from .logs import configure_logging, log_json
from .models import CertRequest
from .ports.resolver_port import ResolverPort
from .ports.txt_record_port import TxtRecordError, TxtRecordWriter
from .providers.cli_txt_writer import CliTxtRecordWriter
from .providers.dnspython_resolver import DnsPythonResolver
from .store.base import CertStore
from .store.filesystem import FilesystemCertStore

_TXT_FIELDS = ("domain", "key", "value")


def _get_version() -> str:
    try:
        return version("dns-proxy-api")
    except PackageNotFoundError:
        return "unknown"


def create_app(
    config: GatewayConfig | None = None,
    *,
    resolver: ResolverPort | None = None,
    cert_store: CertStore | None = None,
    txt_writer: TxtRecordWriter | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        cfg = config or load_gateway_config()
        app.state.config = cfg
        app.state.gate = CertGate(
            CertGatePolicy(
                bearer_token=cfg.cert_bearer_token,
                allowlist=cfg.cert_dns_allowlist,
                dns_timeout_s=cfg.dns_timeout_s,
            ),
            resolver=resolver or DnsPythonResolver(timeout_s=cfg.dns_timeout_s),
            store=cert_store
            or FilesystemCertStore(cfg.cert_base_dir, read_timeout_s=cfg.file_read_timeout_s),
        )
        app.state.txt_writer = txt_writer or CliTxtRecordWriter(
            cli_path=cfg.txt_cli_path, timeout_s=cfg.txt_cli_timeout_s
        )
        app.state.start_time = time.monotonic()
        yield

    app = FastAPI(title="DNS Proxy API", version=_get_version(), lifespan=lifespan)

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        request_id = request.headers.get("x-request-id", "").strip() or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            latency_ms = int((time.monotonic() - start) * 1000)
            log_json(
                logging.ERROR,
                "request.failed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                latency_ms=latency_ms,
            )
            raise
        latency_ms = int((time.monotonic() - start) * 1000)
        response.headers["x-request-id"] = request_id
        log_json(
            logging.INFO,
            "request.completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )
        return response

    @app.get("/healthz")
    async def healthz() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/certs/{cert_path:path}")
    async def get_cert(request: Request, cert_path: str) -> Response:
        cert_request = CertRequest(
            authorization=request.headers.get("authorization"),
            peer_host=request.client.host if request.client else None,
            cert_path=cert_path,
        )
        try:
            served = await app.state.gate.handle(cert_request)
        except GateError as exc:
            raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
        return Response(content=served.data, media_type=served.content_type)

    @app.post("/set_txt")
    async def set_txt(request: Request) -> PlainTextResponse:
        cfg: GatewayConfig = app.state.config
        if not check_bearer(request.headers.get("authorization"), cfg.api_key):
            log_json(logging.WARNING, "txt.denied", client_address=_peer_host(request))
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        domain, key, value = await _parse_txt_body(request)
        try:
            await app.state.txt_writer.create_txt_record(domain, key, value)
        except TxtRecordError as exc:
            log_json(logging.ERROR, "txt.failed", domain=domain, key=key, error=str(exc))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="dns record update failed",
            ) from exc
        log_json(logging.INFO, "txt.set", domain=domain, key=key, client_address=_peer_host(request))
        return PlainTextResponse("TXT record set")

    return app


async def _parse_txt_body(request: Request) -> tuple[str, str, str]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid request body") from exc
    if not isinstance(body, Mapping):
        raise HTTPException(status_code=400, detail="Invalid request body")
    fields: list[str] = []
    for name in _TXT_FIELDS:
        value: Any = body.get(name)
        if not isinstance(value, str) or value == "":
            raise HTTPException(status_code=400, detail="Invalid request body")
        fields.append(value)
    domain, key, value = fields
    return domain, key, value


def _peer_host(request: Request) -> str | None:
    return request.client.host if request.client else None


def main() -> None:
    args = _parse_args()
    configure_logging()
    try:
        cfg = load_gateway_config(Path(args.config) if args.config else None)
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(f"dns-proxy-api: {exc}") from exc
    app = create_app(cfg)
    log_json(
        logging.INFO,
        "server.starting",
        host=args.host,
        port=args.port,
        tls=cfg.tls_enabled,
        cert_base_dir=str(cfg.cert_base_dir),
        allowlist=list(cfg.cert_dns_allowlist),
    )
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        reload=False,
        ssl_certfile=str(cfg.tls_cert) if cfg.tls_enabled else None,
        ssl_keyfile=str(cfg.tls_key) if cfg.tls_enabled else None,
    )


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="dns-proxy-api")
    sub = parser.add_subparsers(dest="command", required=True)
    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=5000)
    serve.add_argument("--config", default=None)
    return parser.parse_args()


app = create_app()
