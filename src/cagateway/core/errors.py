"""Error taxonomy for the request pipeline.

Pipeline stages raise one of the exceptions below; the dispatcher
(:class:`cagateway.services.gateway.GatewayService`) catches them at a
single boundary and turns them into a typed
:class:`~cagateway.core.outcome.Failure`.

* :class:`ClientInputError`: missing or invalid request data.
* :class:`~cagateway.ca.base.CAError`: raised by the CA engine and
  credential factories; reported as a domain-operation failure.
* anything else: an unhandled failure with a generic body.
"""

from __future__ import annotations

# Messages callers rely on to tell validation failures apart.
MUST_PROVIDE_CA = "Must provide a CA"
CA_NOT_FOUND = "CA not found"
MUST_PROVIDE_PROFILE = "Must provide a CA profile"
MUST_PROVIDE_VALIDITY_PERIOD = "Must provide a validity period"
MUST_PROVIDE_CSR_OR_SPKI = "Must provide a CSR or SPKI"
MUST_PROVIDE_SUBJECT = "Must provide a subject"
CA_MUST_BE_PROVIDED = "CA must be provided"
SERIAL_MUST_BE_PROVIDED = "Serial must be provided."

# Body returned for failures that are not recognised domain errors.
GENERIC_FAILURE_MESSAGE = "Something is amiss with our CA. You should ... wait?"


class ClientInputError(Exception):
    """A required request field is missing or unusable.

    Parameters
    ----------
    detail:
        Message returned verbatim as the response body.

    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class CaNotFoundError(ClientInputError):
    """The requested CA name is not configured."""

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        super().__init__(CA_NOT_FOUND)
