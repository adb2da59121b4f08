"""Extract a distinguished name from request parameters.

Three spellings are recognised for a field named ``subject``:

``subject[CN]=example.com&subject[O]=Acme``
    Keyed form.  Order of appearance is kept.
``subject[0][key]=CN&subject[0][value]=example.com``
    Indexed form, for repeated attribute types.  Slots are ordered by
    their first appearance.
``subject=/CN=example.com/O=Acme`` or ``subject=CN=example.com,O=Acme``
    A whole DN in one value, OpenSSL slash style (in order) or
    RFC 4514 comma style (most significant RDN last).

Entries with a blank type or value are skipped.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import parse_qsl

from cagateway.ca.names import Subject

_UNESCAPED_COMMA_RE = re.compile(r"(?<!\\),")
_UNESCAPED_SLASH_RE = re.compile(r"(?<!\\)/")

Pairs = Iterable[tuple[str, str]]


class SubjectParser:
    """Stateless; one instance is shared by all requests."""

    def parse(self, raw: str | bytes | Pairs, field: str = "subject") -> Subject:
        named_re = re.compile(rf"^{re.escape(field)}\[([^\[\]]+)\]$")
        indexed_re = re.compile(rf"^{re.escape(field)}\[(\d+)\]\[(key|value)\]$")

        entries: list[list[str | None]] = []
        slots: dict[str, list[str | None]] = {}

        for key, value in _pairs(raw):
            if key == field:
                entries.extend([k, v] for k, v in _parse_dn(value))
                continue
            m = indexed_re.match(key)
            if m is not None:
                slot = slots.get(m.group(1))
                if slot is None:
                    slot = slots[m.group(1)] = [None, None]
                    entries.append(slot)
                slot[0 if m.group(2) == "key" else 1] = value
                continue
            m = named_re.match(key)
            if m is not None and not m.group(1).isdigit():
                entries.append([m.group(1), value])

        items = []
        for k, v in entries:
            k = (k or "").strip()  # noqa: PLW2901
            v = (v or "").strip()  # noqa: PLW2901
            if k and v:
                items.append((k, v))
        return Subject.from_pairs(items)


def _pairs(raw: str | bytes | Pairs) -> list[tuple[str, str]]:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        return parse_qsl(raw, keep_blank_values=True)
    return [(str(k), v if isinstance(v, str) else str(v)) for k, v in raw]


def _parse_dn(value: str) -> list[tuple[str, str]]:
    text = value.strip()
    if not text:
        return []
    if text.startswith("/"):
        parts = _UNESCAPED_SLASH_RE.split(text[1:])
        unescape = ("\\/", "/")
    else:
        parts = list(reversed(_UNESCAPED_COMMA_RE.split(text)))
        unescape = ("\\,", ",")
    result = []
    for part in parts:
        attr, sep, val = part.partition("=")
        if sep:
            result.append((attr.strip(), val.strip().replace(*unescape)))
    return result
