"""Assemble the signer's input from a validated issuance request."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cagateway.core.errors import MUST_PROVIDE_CSR_OR_SPKI, ClientInputError
from cagateway.models.requests import SigningRequest

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cryptography import x509

    from cagateway.ca.factories import CSRFactory, SPKIFactory
    from cagateway.models.requests import IssueRequest, ValidityWindow


def assemble_signing_request(
    request: IssueRequest,
    san_names: Sequence[str | x509.GeneralName],
    validity: ValidityWindow,
    csr_factory: CSRFactory,
    spki_factory: SPKIFactory,
) -> SigningRequest:
    """Parse the credential and combine it with the other fields.

    An SPKI carries no subject of its own, so the request subject is
    handed to the SPKI factory.  Factory errors propagate unchanged.
    """
    common = {
        "profile_name": request.profile,
        "subject": request.subject,
        "san_names": tuple(san_names),
        "validity": validity,
    }
    if request.csr is not None:
        return SigningRequest(csr=csr_factory.build(csr=request.csr), **common)
    if request.spki is not None:
        spki = spki_factory.build(spki=request.spki, subject=request.subject)
        return SigningRequest(spki=spki, **common)
    raise ClientInputError(MUST_PROVIDE_CSR_OR_SPKI)
