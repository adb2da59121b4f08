"""CRL endpoints.

``GET /1/crl/<ca>/get`` returns the current CRL; ``GET
/1/crl/<ca>/generate`` signs a fresh one first.  Both return PEM text.
"""

from __future__ import annotations

from flask import Blueprint

from cagateway.app.context import get_gateway

crl_bp = Blueprint("crl", __name__)


@crl_bp.route("/crl/<ca>/get", methods=["GET"])
@crl_bp.route("/crl/<ca>/get/", methods=["GET"])
def get_crl(ca: str):
    return get_gateway().get_crl(ca).to_response()


@crl_bp.route("/crl/<ca>/generate", methods=["GET"])
@crl_bp.route("/crl/<ca>/generate/", methods=["GET"])
def generate_crl(ca: str):
    return get_gateway().generate_crl(ca).to_response()
