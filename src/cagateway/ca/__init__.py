"""CA engine: signers, CRL administration and credential factories."""

from cagateway.ca.base import CAError, CRLBackend, IssuedCertificate, SignerBackend
from cagateway.ca.registry import CaHandlePair, CARegistry

__all__ = [
    "CAError",
    "CARegistry",
    "CRLBackend",
    "CaHandlePair",
    "IssuedCertificate",
    "SignerBackend",
]
