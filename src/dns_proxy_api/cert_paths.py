from __future__ import annotations

from .errors import MalformedRequestError, UnknownResourceError

__all__ = ["CERT_FILE_NAMES", "parse_cert_path"]

# The only leaf names ever served, whatever else exists on disk.
CERT_FILE_NAMES = frozenset({"fullchain.pem", "privkey.pem", "cert.pem", "chain.pem"})

_FORBIDDEN_DOMAIN_TOKENS = ("..", "/", "\\", "\x00")


def parse_cert_path(raw_path: str) -> tuple[str, str]:
    """
    Split ``{domain}/{file}`` (the part after ``/certs/``) and validate it.

    Raises MalformedRequestError for a bad shape or a traversal token in the
    domain, UnknownResourceError for a file name outside CERT_FILE_NAMES.
    """
    parts = raw_path.split("/", 1)
    if len(parts) != 2 or parts[0] == "" or parts[1] == "":
        raise MalformedRequestError(f"expected {{domain}}/{{file}}, got {raw_path!r}")
    domain, file_name = parts
    for token in _FORBIDDEN_DOMAIN_TOKENS:
        if token in domain:
            raise MalformedRequestError(f"domain contains forbidden token {token!r}")
    if file_name not in CERT_FILE_NAMES:
        raise UnknownResourceError(f"file name not allowed: {file_name!r}")
    return domain, file_name
