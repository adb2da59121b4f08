"""Distinguished names and general names.

:class:`Subject` is the ordered ``(type, value)`` list the subject
parser produces.  It stays a plain value until signing time, when
:meth:`Subject.to_name` converts it to an :class:`x509.Name`.

General names are either plain strings, whose type is inferred, or
items created from an ASN.1 ``GeneralName`` context tag with
:func:`create_general_name`.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.x509.oid import NameOID

from cagateway.ca.base import CAError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

# GeneralName CHOICE tags (RFC 5280 §4.2.1.6)
RFC822_NAME = 1
DNS_NAME = 2
URI = 6
IP_ADDRESS = 7

_ATTRIBUTE_OIDS: dict[str, x509.ObjectIdentifier] = {
    "CN": NameOID.COMMON_NAME,
    "commonName": NameOID.COMMON_NAME,
    "C": NameOID.COUNTRY_NAME,
    "countryName": NameOID.COUNTRY_NAME,
    "ST": NameOID.STATE_OR_PROVINCE_NAME,
    "stateOrProvinceName": NameOID.STATE_OR_PROVINCE_NAME,
    "L": NameOID.LOCALITY_NAME,
    "localityName": NameOID.LOCALITY_NAME,
    "O": NameOID.ORGANIZATION_NAME,
    "organizationName": NameOID.ORGANIZATION_NAME,
    "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "organizationalUnitName": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "emailAddress": NameOID.EMAIL_ADDRESS,
    "DC": NameOID.DOMAIN_COMPONENT,
    "domainComponent": NameOID.DOMAIN_COMPONENT,
    "serialNumber": NameOID.SERIAL_NUMBER,
    "SN": NameOID.SURNAME,
    "surname": NameOID.SURNAME,
    "GN": NameOID.GIVEN_NAME,
    "givenName": NameOID.GIVEN_NAME,
    "title": NameOID.TITLE,
    "street": NameOID.STREET_ADDRESS,
    "postalCode": NameOID.POSTAL_CODE,
    "UID": NameOID.USER_ID,
    "pseudonym": NameOID.PSEUDONYM,
}

_DOTTED_OID_RE = re.compile(r"^\d+(\.\d+)+$")


def _attribute_oid(name: str) -> x509.ObjectIdentifier:
    oid = _ATTRIBUTE_OIDS.get(name)
    if oid is not None:
        return oid
    if _DOTTED_OID_RE.match(name):
        return x509.ObjectIdentifier(name)
    msg = f"Unknown subject attribute type '{name}'"
    raise CAError(msg)


@dataclass(frozen=True)
class Subject:
    """Ordered distinguished-name components.

    Repeated types (several ``OU`` values, say) are kept in the order
    given.
    """

    items: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> Subject:
        return cls(tuple((str(k), str(v)) for k, v in pairs))

    @property
    def empty(self) -> bool:
        return not self.items

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __str__(self) -> str:
        return "".join(f"/{k}={v}" for k, v in self.items)

    def get(self, name: str) -> str | None:
        """Return the first value of attribute *name*, if any."""
        for key, value in self.items:
            if key == name:
                return value
        return None

    def restricted_to(self, required: tuple[str, ...], optional: tuple[str, ...]) -> Subject:
        """Apply a profile's subject item policy.

        Raises
        ------
        CAError
            If a required attribute is missing.

        """
        present = {k for k, _ in self.items}
        missing = [name for name in required if name not in present]
        if missing:
            msg = f"Required subject items missing: {', '.join(missing)}"
            raise CAError(msg)
        allowed = set(required) | set(optional)
        return Subject(tuple((k, v) for k, v in self.items if k in allowed))

    def to_name(self) -> x509.Name:
        """Convert to an :class:`x509.Name`, one RDN per attribute.

        Raises
        ------
        CAError
            For unknown attribute types or values the X.509 encoder
            rejects (e.g. a country code that is not two letters).
        """
        attributes = []
        for key, value in self.items:
            oid = _attribute_oid(key)
            try:
                attributes.append(x509.NameAttribute(oid, value))
            except ValueError as exc:
                msg = f"Invalid value for subject attribute {key}: {exc}"
                raise CAError(msg) from exc
        return x509.Name(attributes)


# ---------------------------------------------------------------------------
# General names
# ---------------------------------------------------------------------------


def create_general_name(tag: int, value: str) -> x509.GeneralName:
    """Create a general name from its ASN.1 context tag and value.

    Supported tags: 1 (rfc822Name), 2 (dNSName), 6 (URI),
    7 (iPAddress, address or network).
    """
    text_types = {
        RFC822_NAME: x509.RFC822Name,
        DNS_NAME: x509.DNSName,
        URI: x509.UniformResourceIdentifier,
    }
    if tag in text_types:
        try:
            return text_types[tag](value)
        except ValueError as exc:
            msg = f"Invalid subject alternative name {value!r}: {exc}"
            raise CAError(msg) from exc
    if tag == IP_ADDRESS:
        try:
            if "/" in value:
                return x509.IPAddress(ipaddress.ip_network(value))
            return x509.IPAddress(ipaddress.ip_address(value))
        except ValueError as exc:
            msg = f"Invalid IP address in subject alternative name: {value}"
            raise CAError(msg) from exc
    msg = f"Unsupported general name tag {tag}"
    raise CAError(msg)


def parse_general_name(value: str) -> x509.GeneralName:
    """Infer the type of a plain SAN string.

    IP addresses become ``iPAddress``, values containing ``://`` become
    ``URI``, values containing ``@`` become ``rfc822Name`` and anything
    else a ``dNSName``.
    """
    try:
        return x509.IPAddress(ipaddress.ip_address(value))
    except ValueError:
        pass
    if "://" in value:
        return x509.UniformResourceIdentifier(value)
    if "@" in value:
        return x509.RFC822Name(value)
    return x509.DNSName(value)


def to_general_names(names: Iterable[str | x509.GeneralName]) -> list[x509.GeneralName]:
    return [n if isinstance(n, x509.GeneralName) else parse_general_name(n) for n in names]
