"""
Error taxonomy for the certificate gate.

Each error carries the HTTP status and a deliberately generic ``detail``
string for the caller. The exception message is server-side detail and is
only ever logged.
"""
from __future__ import annotations

__all__ = [
    "GateError",
    "AuthenticationError",
    "AuthorizationError",
    "MalformedRequestError",
    "UnknownResourceError",
    "InternalFailureError",
]


class GateError(Exception):
    status_code = 500
    detail = "Internal Server Error"
    reason = "internal"


class AuthenticationError(GateError):
    status_code = 401
    detail = "Unauthorized"
    reason = "authentication"


class AuthorizationError(GateError):
    status_code = 403
    detail = "Forbidden"
    reason = "authorization"


class MalformedRequestError(GateError):
    status_code = 400
    detail = "Bad Request"
    reason = "malformed_request"


class UnknownResourceError(GateError):
    status_code = 404
    detail = "Not Found"
    reason = "unknown_resource"


class InternalFailureError(GateError):
    pass
