"""Typed results produced by the dispatcher.

Every gateway operation ends in exactly one :class:`Success` or
:class:`Failure`.  Only these values are turned into HTTP responses,
so the failure-to-status mapping lives in one place.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import Response

from cagateway.core.types import FailureKind

TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

_FAILURE_STATUS: dict[FailureKind, int] = {
    FailureKind.CLIENT_INPUT: 400,
    FailureKind.DOMAIN_OPERATION: 500,
    FailureKind.UNHANDLED: 500,
}


@dataclass(frozen=True)
class Success:
    """A completed operation and its PEM body."""

    body: str

    @property
    def ok(self) -> bool:
        return True

    @property
    def status(self) -> int:
        return 200

    def to_response(self) -> Response:
        return Response(self.body, status=self.status, content_type=TEXT_CONTENT_TYPE)


@dataclass(frozen=True)
class Failure:
    """A failed operation.

    Attributes
    ----------
    kind:
        Which branch of the error taxonomy produced the failure.
    message:
        Response body.  For :attr:`FailureKind.UNHANDLED` this is the
        generic message, never the underlying exception text.

    """

    kind: FailureKind
    message: str

    @property
    def ok(self) -> bool:
        return False

    @property
    def status(self) -> int:
        return _FAILURE_STATUS[self.kind]

    def to_response(self) -> Response:
        resp = Response(self.message, status=self.status, content_type=TEXT_CONTENT_TYPE)
        resp.headers["Cache-Control"] = "no-store"
        return resp


Outcome = Success | Failure
