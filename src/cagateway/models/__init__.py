"""Request models for the gateway pipeline.

All models are frozen dataclasses.
"""

from cagateway.models.requests import (
    IssueRequest,
    RevocationRequest,
    SigningRequest,
    ValidityWindow,
)

__all__ = [
    "IssueRequest",
    "RevocationRequest",
    "SigningRequest",
    "ValidityWindow",
]
