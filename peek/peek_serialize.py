from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import yaml


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str, *, encoding: Optional[str] = None) -> str:
    if isinstance(data, (bytes, bytearray)):
        return data.decode(encoding or 'utf-8', errors='replace')
    if isinstance(data, str):
        return data
    return str(data)


def detect_format(path: Optional[str] = None, data_hint: Optional[str] = None) -> Optional[str]:
    """
    Returns a canonical format name among: 'json', 'yaml'.
    Uses the file suffix first; falls back to simple data sniffing if provided.
    """
    suffix = Path(path).suffix.lower() if path else ""
    if suffix == '.json':
        return 'json'
    if suffix in ('.yaml', '.yml'):
        return 'yaml'

    if data_hint is not None:
        s = data_hint.lstrip()
        if s.startswith('{') or s.startswith('['):
            return 'json'
        # YAML is a superset of JSON, so it is the catch-all for text
        return 'yaml'
    return None


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str, *, fmt: Optional[str] = None) -> Any:
    """
    Convert document text into plain Python structures (dicts, lists, scalars).
    Supported fmt: 'json', 'yaml'. If fmt is None the data is sniffed.
    """
    text = _norm_text(data)
    f = fmt or detect_format(data_hint=text)
    if f == 'json':
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            # Declared JSON that is really YAML-like still loads
            return yaml.safe_load(text)
    if f == 'yaml':
        return yaml.safe_load(text)
    raise ValueError(f"Unsupported document format: {fmt!r}")


def load_document(path: str | Path) -> Any:
    """Reads a JSON or YAML file, choosing the format from its suffix."""
    p = Path(path)
    text = p.read_text(encoding='utf-8')
    return deserialize(text, fmt=detect_format(str(p), text))


def serialize(value: Any, *, fmt: str, indent: int = 2) -> str:
    """
    Convert a plain Python value (already reduced to builtins) into text.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    if f == 'json':
        return json.dumps(value, ensure_ascii=False, indent=indent or None)
    if f == 'yaml':
        text = yaml.safe_dump(value, sort_keys=False, allow_unicode=True, indent=min(max(indent, 2), 9))
        # Scalars come back with an explicit document end marker
        if text.endswith("\n...\n"):
            text = text[:-len("\n...\n")]
        return text.rstrip("\n")
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "deserialize",
    "serialize",
    "detect_format",
    "load_document",
]
