"""Subject alternative name resolution for issuance requests.

Callers supply SANs in one of two ways, checked in this order:

1. ``extensions[subjectAlternativeName][]``: plain strings, passed on
   as-is (the signer infers each entry's type).
2. ``extensions[dNSNames][]``: each entry becomes a dNSName.

Only the first key present is honoured.  Empty entries are dropped.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from cagateway.ca.names import DNS_NAME, create_general_name

if TYPE_CHECKING:
    from cryptography import x509

SUBJECT_ALTERNATIVE_NAME = "subjectAlternativeName"
DNS_NAMES = "dNSNames"


def _as_list(value: Any) -> list[Any]:  # noqa: ANN401
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        return [value]
    if isinstance(value, Mapping):
        return list(value.values())
    return list(value)


def resolve_san_names(extensions: Mapping[str, Any] | None) -> list[str | x509.GeneralName]:
    if not extensions:
        return []
    if SUBJECT_ALTERNATIVE_NAME in extensions:
        return [name for name in _as_list(extensions[SUBJECT_ALTERNATIVE_NAME]) if name]
    if DNS_NAMES in extensions:
        names: list[str | x509.GeneralName] = []
        for raw in _as_list(extensions[DNS_NAMES]):
            name = str(raw).strip() if raw is not None else ""
            if name:
                names.append(create_general_name(DNS_NAME, name))
        return names
    return []
