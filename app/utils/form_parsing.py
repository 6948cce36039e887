"""
Rebuild nested payloads from form-encoded webhook bodies.

The CRM posts event bodies as ``application/x-www-form-urlencoded`` with
bracketed keys, e.g. ``data[MESSAGES][0][chat][id]=tgbot_1``.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

_KEY_PART_RE = re.compile(r"\[([^\]]*)\]")


def _split_key(key: str) -> list[str]:
    head, _, rest = key.partition("[")
    if not rest:
        return [key]
    return [head] + _KEY_PART_RE.findall("[" + rest)


def _listify(node: Any) -> Any:
    if not isinstance(node, dict):
        return node
    converted = {k: _listify(v) for k, v in node.items()}
    if converted and all(k.isdigit() for k in converted):
        return [converted[k] for k in sorted(converted, key=int)]
    return converted


def parse_nested_form(items: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Turn ``(key, value)`` pairs with bracketed keys into nested dicts and lists."""
    root: dict[str, Any] = {}
    for key, value in items:
        parts = _split_key(key)
        node = root
        for part in parts[:-1]:
            if part == "":
                part = str(len(node))
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        last = parts[-1]
        if last == "":
            last = str(len(node))
        node[last] = value
    return _listify(root)
