"""Redaction of secrets and bulky key material before logging.

Request parameters can carry whole CSRs or SPKACs; configuration can
carry a key password.  Neither belongs in a log line.
"""

from __future__ import annotations

import re
from typing import Any

_SECRET_KEYS = frozenset({"key_password", "password", "passphrase"})

_PEM_BODY_RE = re.compile(
    r"(-----BEGIN [A-Z0-9 ]+-----)"
    r"([\s\S]*?)"
    r"(-----END [A-Z0-9 ]+-----)",
)

# Values longer than this that are not PEM are truncated.
_MAX_VALUE_LEN = 256


def sanitize_pem(pem: str) -> str:
    """Replace the base64 body of every PEM block with ``[REDACTED]``.

    The BEGIN/END markers are preserved so the object type stays visible.
    """

    def _redact(m: re.Match) -> str:
        return f"{m.group(1)}\n[REDACTED]\n{m.group(3)}"

    return _PEM_BODY_RE.sub(_redact, pem)


def sanitize_for_logs(data: Any) -> Any:  # noqa: ANN401
    """Recursively sanitize *data* for inclusion in a log record.

    * mapping values under secret-looking keys become ``[REDACTED]``
    * PEM blocks are collapsed with :func:`sanitize_pem`
    * other long strings (e.g. a base64 SPKAC) are truncated
    """
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if k in _SECRET_KEYS and v else sanitize_for_logs(v)
            for k, v in data.items()
        }

    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)

    if isinstance(data, bytes):
        return f"<{len(data)} bytes>"

    if isinstance(data, str):
        if "-----BEGIN " in data:
            return sanitize_pem(data)
        if len(data) > _MAX_VALUE_LEN:
            return f"{data[:32]}...[{len(data)} chars]"
        return data

    return data
