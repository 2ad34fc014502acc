from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import pytest
from fake_resolver import FakeResolver

from dns_proxy_api.allowlist import Allowlist
from dns_proxy_api.errors import (
    AuthenticationError,
    AuthorizationError,
    GateError,
    InternalFailureError,
    MalformedRequestError,
    UnknownResourceError,
)
from dns_proxy_api.gate import CertGate, CertGatePolicy, extract_client_address
from dns_proxy_api.models import PEM_CONTENT_TYPE, CertRequest
from dns_proxy_api.store.filesystem import FilesystemCertStore

TOKEN = "cert-token"
CLIENT = "203.0.113.5"
PEM = b"-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"


@pytest.fixture
def cert_root(tmp_path: Path) -> Path:
    root = tmp_path / "live"
    domain_dir = root / "example.org"
    domain_dir.mkdir(parents=True)
    (domain_dir / "fullchain.pem").write_bytes(PEM)
    (domain_dir / "secret.txt").write_bytes(b"do not serve")
    return root


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver(
        ptr={CLIENT: ["client.example.com."]},
        hosts={"client.example.com": [CLIENT]},
    )


def _gate(cert_root: Path, resolver: FakeResolver) -> CertGate:
    policy = CertGatePolicy(
        bearer_token=TOKEN,
        allowlist=Allowlist(["client.example.com"]),
        dns_timeout_s=0.2,
    )
    return CertGate(policy, resolver=resolver, store=FilesystemCertStore(cert_root))


def _request(path: str, *, authorization: str | None = f"Bearer {TOKEN}", peer: str | None = CLIENT) -> CertRequest:
    return CertRequest(authorization=authorization, peer_host=peer, cert_path=path)


def test_authorized_request_returns_file(cert_root: Path, resolver: FakeResolver) -> None:
    served = asyncio.run(_gate(cert_root, resolver).handle(_request("example.org/fullchain.pem")))
    assert served.data == PEM
    assert served.content_type == PEM_CONTENT_TYPE
    assert served.path == cert_root / "example.org" / "fullchain.pem"
    assert served.client_address == CLIENT


def test_repeated_requests_are_identical(cert_root: Path, resolver: FakeResolver) -> None:
    gate = _gate(cert_root, resolver)
    first = asyncio.run(gate.handle(_request("example.org/fullchain.pem")))
    second = asyncio.run(gate.handle(_request("example.org/fullchain.pem")))
    assert first == second
    assert (cert_root / "example.org" / "fullchain.pem").read_bytes() == PEM


def test_missing_credential_short_circuits_before_dns(cert_root: Path, resolver: FakeResolver) -> None:
    with pytest.raises(AuthenticationError):
        asyncio.run(_gate(cert_root, resolver).handle(_request("example.org/fullchain.pem", authorization=None)))
    assert resolver.calls == []


def test_wrong_credential_rejected_even_for_bad_paths(cert_root: Path, resolver: FakeResolver) -> None:
    gate = _gate(cert_root, resolver)
    for path in ("../etc/passwd/fullchain.pem", "example.org/secret.txt", "", "nope.example/cert.pem"):
        with pytest.raises(AuthenticationError):
            asyncio.run(gate.handle(_request(path, authorization="Bearer wrong")))
    assert resolver.calls == []


def test_forward_mismatch_is_forbidden(cert_root: Path) -> None:
    resolver = FakeResolver(
        ptr={CLIENT: ["client.example.com."]},
        hosts={"client.example.com": ["203.0.113.9"]},
    )
    with pytest.raises(AuthorizationError):
        asyncio.run(_gate(cert_root, resolver).handle(_request("example.org/fullchain.pem")))


@pytest.mark.parametrize("peer", [None, "", "testclient", "203.0.113.5:443"])
def test_unparseable_peer_is_forbidden_without_dns(cert_root: Path, resolver: FakeResolver, peer: str | None) -> None:
    with pytest.raises(AuthorizationError):
        asyncio.run(_gate(cert_root, resolver).handle(_request("example.org/fullchain.pem", peer=peer)))
    assert resolver.calls == []


def test_unauthorized_client_learns_nothing_about_paths(cert_root: Path) -> None:
    gate = _gate(cert_root, FakeResolver())
    for path in ("../etc/passwd/fullchain.pem", "example.org/secret.txt", "missing.org/cert.pem"):
        with pytest.raises(AuthorizationError):
            asyncio.run(gate.handle(_request(path)))


def test_traversal_domain_is_malformed(cert_root: Path, resolver: FakeResolver) -> None:
    with pytest.raises(MalformedRequestError):
        asyncio.run(_gate(cert_root, resolver).handle(_request("../etc/passwd/fullchain.pem")))


def test_disallowed_file_is_not_found_even_if_present(cert_root: Path, resolver: FakeResolver) -> None:
    assert (cert_root / "example.org" / "secret.txt").exists()
    with pytest.raises(UnknownResourceError):
        asyncio.run(_gate(cert_root, resolver).handle(_request("example.org/secret.txt")))


def test_absent_file_is_not_found(cert_root: Path, resolver: FakeResolver) -> None:
    gate = _gate(cert_root, resolver)
    with pytest.raises(UnknownResourceError):
        asyncio.run(gate.handle(_request("example.org/privkey.pem")))
    with pytest.raises(UnknownResourceError):
        asyncio.run(gate.handle(_request("unknown.org/fullchain.pem")))


def test_unreadable_file_is_internal_failure(cert_root: Path, resolver: FakeResolver) -> None:
    (cert_root / "example.org" / "cert.pem").mkdir()
    with pytest.raises(InternalFailureError):
        asyncio.run(_gate(cert_root, resolver).handle(_request("example.org/cert.pem")))


def _logged(caplog, message: str) -> list[dict]:
    events = [json.loads(r.getMessage()) for r in caplog.records if r.name == "dns_proxy_api"]
    return [event for event in events if event["message"] == message]


def test_serve_is_logged_with_path_and_client(cert_root: Path, resolver: FakeResolver, caplog) -> None:
    caplog.set_level(logging.INFO, logger="dns_proxy_api")
    asyncio.run(_gate(cert_root, resolver).handle(_request("example.org/fullchain.pem")))
    assert _logged(caplog, "cert.served") == [
        {
            "message": "cert.served",
            "path": str(cert_root / "example.org" / "fullchain.pem"),
            "client_address": CLIENT,
        }
    ]
    assert _logged(caplog, "cert.denied") == []


@pytest.mark.parametrize(
    ("authorization", "path", "reason", "status_code"),
    [
        (None, "example.org/fullchain.pem", "authentication", 401),
        (f"Bearer {TOKEN}", "../etc/passwd/fullchain.pem", "malformed_request", 400),
        (f"Bearer {TOKEN}", "example.org/secret.txt", "unknown_resource", 404),
    ],
)
def test_denial_is_logged_with_reason_and_client(
    cert_root: Path,
    resolver: FakeResolver,
    caplog,
    authorization: str | None,
    path: str,
    reason: str,
    status_code: int,
) -> None:
    caplog.set_level(logging.INFO, logger="dns_proxy_api")
    with pytest.raises(GateError):
        asyncio.run(_gate(cert_root, resolver).handle(_request(path, authorization=authorization)))
    denied = _logged(caplog, "cert.denied")
    assert len(denied) == 1
    assert denied[0]["reason"] == reason
    assert denied[0]["status_code"] == status_code
    assert denied[0]["client_address"] == CLIENT
    assert _logged(caplog, "cert.served") == []


def test_fcrdns_denial_logs_lookup_failure_and_denial(cert_root: Path, caplog) -> None:
    caplog.set_level(logging.INFO, logger="dns_proxy_api")
    resolver = FakeResolver(
        ptr={CLIENT: ["client.example.com."]},
        failing={"client.example.com"},
    )
    with pytest.raises(AuthorizationError):
        asyncio.run(_gate(cert_root, resolver).handle(_request("example.org/fullchain.pem")))
    failures = _logged(caplog, "fcrdns.lookup_failed")
    assert [(e["direction"], e["name"]) for e in failures] == [("forward", "client.example.com")]
    denied = _logged(caplog, "cert.denied")
    assert [(e["reason"], e["client_address"]) for e in denied] == [("authorization", CLIENT)]


def test_read_failure_detail_goes_to_log(cert_root: Path, resolver: FakeResolver, caplog) -> None:
    caplog.set_level(logging.INFO, logger="dns_proxy_api")
    (cert_root / "example.org" / "cert.pem").mkdir()
    with pytest.raises(InternalFailureError) as excinfo:
        asyncio.run(_gate(cert_root, resolver).handle(_request("example.org/cert.pem")))
    assert excinfo.value.detail == "Internal Server Error"
    read_failed = _logged(caplog, "cert.read_failed")
    assert len(read_failed) == 1
    assert read_failed[0]["path"] == str(cert_root / "example.org" / "cert.pem")
    assert read_failed[0]["error"]
    denied = _logged(caplog, "cert.denied")
    assert [(e["reason"], e["status_code"]) for e in denied] == [("internal", 500)]


def test_extract_client_address_normalizes() -> None:
    assert extract_client_address("::ffff:203.0.113.5") == CLIENT
    assert extract_client_address("2001:DB8::1") == "2001:db8::1"
