"""
Certificate pull gate.

Stages run in a fixed order and the first failure short-circuits:

1. bearer credential              -> 401
2. client address from the peer   -> 403
3. FCrDNS against the allowlist   -> 403
4. {domain}/{file} validation     -> 400 / 404
5. file read under the cert root  -> 404 / 500

Authorization (1-3) always precedes resource resolution (4-5) so callers
who fail it learn nothing about which files exist.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from .allowlist import Allowlist
from .auth import check_bearer
from .cert_paths import parse_cert_path
from .errors import AuthenticationError, AuthorizationError, GateError
from .fcrdns import is_authorized, parse_ip
from .logs import log_json
from .models import CertRequest, ServedCert
from .ports.resolver_port import ResolverPort
from .store.base import CertStore

__all__ = ["CertGate", "CertGatePolicy", "extract_client_address"]


@dataclass(frozen=True)
class CertGatePolicy:
    bearer_token: str
    allowlist: Allowlist
    dns_timeout_s: float = 3.0


def extract_client_address(peer_host: str | None) -> str:
    if peer_host is None:
        raise AuthorizationError("peer address unavailable")
    ip = parse_ip(peer_host)
    if ip is None:
        raise AuthorizationError(f"cannot parse peer address {peer_host!r}")
    return str(ip)


class CertGate:
    def __init__(self, policy: CertGatePolicy, *, resolver: ResolverPort, store: CertStore) -> None:
        self._policy = policy
        self._resolver = resolver
        self._store = store

    async def handle(self, request: CertRequest) -> ServedCert:
        try:
            return await self._run(request)
        except GateError as exc:
            log_json(
                logging.WARNING if exc.status_code < 500 else logging.ERROR,
                "cert.denied",
                reason=exc.reason,
                status_code=exc.status_code,
                client_address=request.peer_host,
                error=str(exc),
            )
            raise

    async def _run(self, request: CertRequest) -> ServedCert:
        if not check_bearer(request.authorization, self._policy.bearer_token):
            raise AuthenticationError("bearer credential rejected")

        client_address = extract_client_address(request.peer_host)
        authorized = await is_authorized(
            client_address,
            self._policy.allowlist,
            self._resolver,
            timeout_s=self._policy.dns_timeout_s,
        )
        if not authorized:
            raise AuthorizationError(f"{client_address} not in DNS allowlist")

        domain, file_name = parse_cert_path(request.cert_path)
        data = await self._store.read(domain, file_name)
        path = self._store.path_for(domain, file_name)
        log_json(logging.INFO, "cert.served", path=str(path), client_address=client_address)
        return ServedCert(path=path, client_address=client_address, data=data)
