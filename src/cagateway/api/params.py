"""Request parameter normalization.

Form and query parameters arrive as flat ``(key, value)`` pairs.
Bracketed keys are expanded into nested structures:

==================================  ================================
``ca=rootca``                       ``{"ca": "rootca"}``
``extensions[dNSNames][]=a``        ``{"extensions": {"dNSNames": ["a"]}}``
``subject[CN]=x``                   ``{"subject": {"CN": "x"}}``
==================================  ================================

A repeated plain key keeps its last value; ``[]`` keys accumulate.
"""

from __future__ import annotations

import base64
import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from flask import Request
    from werkzeug.datastructures import FileStorage

_KEY_RE = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_PART_RE = re.compile(r"\[([^\[\]]*)\]")


def normalize_params(pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    params: dict[str, Any] = {}
    for key, value in pairs:
        m = _KEY_RE.match(key)
        if m is None:
            params[key] = value
            continue
        parts = [m.group(1), *_PART_RE.findall(m.group(2))]
        _assign(params, parts, value)
    return params


def _assign(node: dict[str, Any], parts: list[str], value: Any) -> None:  # noqa: ANN401
    head, *tail = parts
    if not tail:
        node[head] = value
        return

    if tail[0] == "":
        items = node.get(head)
        if not isinstance(items, list):
            items = node[head] = []
        if len(tail) == 1:
            items.append(value)
            return
        # name[][field]: fill the last element until the field repeats
        if not items or not isinstance(items[-1], dict) or tail[1] in items[-1]:
            items.append({})
        _assign(items[-1], tail[1:], value)
        return

    child = node.get(head)
    if not isinstance(child, dict):
        child = node[head] = {}
    _assign(child, tail, value)


def _file_text(storage: FileStorage) -> str:
    """Uploaded credentials as text; binary (DER) uploads become base64."""
    data = storage.read()
    try:
        return data.decode("ascii")
    except UnicodeDecodeError:
        return base64.b64encode(data).decode("ascii")


def request_pairs(request: Request) -> list[tuple[str, str]]:
    """Ordered query, form and file parameters (body after query)."""
    pairs: list[tuple[str, str]] = list(request.args.items(multi=True))
    pairs.extend(request.form.items(multi=True))
    pairs.extend((key, _file_text(f)) for key, f in request.files.items(multi=True))
    return pairs
