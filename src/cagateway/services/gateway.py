"""Gateway dispatcher -- the operations behind each HTTP endpoint.

:class:`GatewayService` receives all of its collaborators through its
constructor and exposes one method per endpoint.  Each method runs the
request pipeline inside :meth:`GatewayService._run`, the single place
where exceptions become typed :class:`~cagateway.core.outcome.Outcome`
values:

==============================  ==========================  ======
exception                       failure kind                status
==============================  ==========================  ======
:class:`ClientInputError`       ``CLIENT_INPUT``            400
:class:`CAError`                ``DOMAIN_OPERATION``        500
anything else                   ``UNHANDLED``               500
==============================  ==========================  ======
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from cagateway.ca.base import CAError
from cagateway.core.errors import GENERIC_FAILURE_MESSAGE, CaNotFoundError, ClientInputError
from cagateway.core.outcome import Failure, Success
from cagateway.core.types import FailureKind
from cagateway.logging import audit
from cagateway.services.assembler import assemble_signing_request
from cagateway.services.san import resolve_san_names
from cagateway.services.validation import (
    scalar,
    validate_issue,
    validate_revoke,
    validate_unrevoke,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from cagateway.ca.factories import CSRFactory, SPKIFactory
    from cagateway.ca.registry import CaHandlePair, CARegistry
    from cagateway.core.outcome import Outcome
    from cagateway.services.subject_parser import Pairs, SubjectParser
    from cagateway.services.validity import ValidityPeriodConverter

log = logging.getLogger(__name__)


class GatewayService:
    """CRL retrieval and generation, issuance, revocation, unrevocation."""

    def __init__(  # noqa: PLR0913
        self,
        registry: CARegistry,
        subject_parser: SubjectParser,
        validity_converter: ValidityPeriodConverter,
        csr_factory: CSRFactory,
        spki_factory: SPKIFactory,
    ) -> None:
        """Initialize the dispatcher.

        Parameters
        ----------
        registry:
            Read-only CA handles by name.
        subject_parser:
            Extracts the subject from the raw request parameters.
        validity_converter:
            Turns ``validityPeriod`` into a validity window.
        csr_factory, spki_factory:
            Parse credential material.

        """
        self._registry = registry
        self._subject_parser = subject_parser
        self._validity = validity_converter
        self._csr_factory = csr_factory
        self._spki_factory = spki_factory

    @property
    def registry(self) -> CARegistry:
        return self._registry

    # -- CRL ----------------------------------------------------------------

    def get_crl(self, ca_name: str) -> Outcome:
        log.info("Get CRL for %s", ca_name)
        return self._run(
            "crl.get",
            lambda: self._handles(ca_name).crl.to_pem(),
            ca_name=ca_name,
        )

    def generate_crl(self, ca_name: str) -> Outcome:
        log.info("Generate CRL for %s", ca_name)

        def _generate() -> str:
            pem = self._handles(ca_name).crl.generate_crl()
            audit.crl_generated(ca_name)
            return pem

        return self._run("crl.generate", _generate, ca_name=ca_name)

    # -- certificates -------------------------------------------------------

    def issue(self, params: Mapping[str, Any], subject_source: str | bytes | Pairs) -> Outcome:
        """Issue a certificate.

        Parameters
        ----------
        params:
            Normalized request parameters (nested ``extensions``).
        subject_source:
            The raw parameters the subject is parsed from.

        """
        log.info("Issue certificate")

        def _issue() -> str:
            request = validate_issue(params, subject_source, self._registry, self._subject_parser)
            log.info("Issue request for %s: subject=%s", request.ca_name, request.subject)
            handles = self._handles(request.ca_name)
            san_names = resolve_san_names(request.extensions)
            validity = self._validity.convert(request.validity_period)
            signing = assemble_signing_request(
                request,
                san_names,
                validity,
                self._csr_factory,
                self._spki_factory,
            )
            cert = handles.signer.sign(**signing.as_sign_kwargs())
            audit.certificate_issued(
                request.ca_name,
                serial=getattr(cert, "serial_number", None),
                subject=str(request.subject),
                profile=request.profile,
                san_count=len(san_names),
            )
            return cert.to_pem()

        return self._run("certificate.issue", _issue, ca_name=scalar(params.get("ca")))

    def revoke(self, params: Mapping[str, Any]) -> Outcome:
        ca_name = scalar(params.get("ca"))
        log.info("Revoke for serial %s on CA %s", params.get("serial"), ca_name)

        def _revoke() -> str:
            request = validate_revoke(params, self._registry)
            crl = self._handles(request.ca_name).crl
            crl.revoke_cert(request.serial, request.reason)
            audit.certificate_revoked(request.ca_name, serial=request.serial, reason=request.reason)
            return crl.to_pem()

        return self._run("certificate.revoke", _revoke, ca_name=ca_name)

    def unrevoke(self, params: Mapping[str, Any]) -> Outcome:
        ca_name = scalar(params.get("ca"))
        log.info("Unrevoke for serial %s on CA %s", params.get("serial"), ca_name)

        def _unrevoke() -> str:
            request = validate_unrevoke(params, self._registry)
            crl = self._handles(request.ca_name).crl
            crl.unrevoke_cert(request.serial)
            audit.certificate_unrevoked(request.ca_name, serial=request.serial)  # type: ignore[arg-type]
            return crl.to_pem()

        return self._run("certificate.unrevoke", _unrevoke, ca_name=ca_name)

    # -- internals ----------------------------------------------------------

    def _handles(self, ca_name: str | None) -> CaHandlePair:
        handles = self._registry.get(ca_name)
        if handles is None:
            raise CaNotFoundError(ca_name)
        return handles

    @staticmethod
    def _run(operation: str, func: Callable[[], str], *, ca_name: str | None) -> Outcome:
        """Run *func* and map its result or exception to an outcome."""
        context = {"operation": operation, "ca_name": ca_name}
        try:
            body = func()
        except ClientInputError as exc:
            log.warning("%s rejected: %s", operation, exc.detail, extra=context)
            return Failure(FailureKind.CLIENT_INPUT, exc.detail)
        except CAError as exc:
            log.error("%s failed: %s", operation, exc.detail, extra=context)  # noqa: TRY400
            if operation != "crl.get":
                audit.operation_failed(operation, ca_name=ca_name, detail=exc.detail)
            return Failure(FailureKind.DOMAIN_OPERATION, exc.detail)
        except Exception as exc:  # noqa: BLE001
            log.exception(
                "%s failed with unhandled %s",
                operation,
                type(exc).__name__,
                extra=context,
            )
            return Failure(FailureKind.UNHANDLED, GENERIC_FAILURE_MESSAGE)
        return Success(body)
