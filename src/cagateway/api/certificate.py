"""Certificate endpoints: issue, revoke, unrevoke.

Parameters may come from the query string, a url-encoded body or a
multipart body; ``csr`` and ``spki`` may also be uploaded as files.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, request

from cagateway.api.params import normalize_params, request_pairs
from cagateway.app.context import get_gateway
from cagateway.logging.sanitize import sanitize_for_logs

log = logging.getLogger(__name__)

certificate_bp = Blueprint("certificate", __name__)


def _params() -> tuple[list[tuple[str, str]], dict]:
    pairs = request_pairs(request)
    params = normalize_params(pairs)
    if current_app.config.get("LOG_REQUEST_BODY"):
        log.info("Request parameters: %s", sanitize_for_logs(params))
    return pairs, params


@certificate_bp.route("/certificate/issue", methods=["POST"])
@certificate_bp.route("/certificate/issue/", methods=["POST"])
def issue():
    pairs, params = _params()
    return get_gateway().issue(params, pairs).to_response()


@certificate_bp.route("/certificate/revoke", methods=["POST"])
@certificate_bp.route("/certificate/revoke/", methods=["POST"])
def revoke():
    _, params = _params()
    return get_gateway().revoke(params).to_response()


@certificate_bp.route("/certificate/unrevoke", methods=["POST"])
@certificate_bp.route("/certificate/unrevoke/", methods=["POST"])
def unrevoke():
    _, params = _params()
    return get_gateway().unrevoke(params).to_response()
