"""
JSON Canonicalization for deterministic compiler output.

Ensures that a compiled rule serializes byte-for-byte identically for the
same inputs by enforcing consistent key ordering and separators.

This is what makes ``rule_hash`` usable for:
- Change detection before submitting a policy update
- Comparing a locally compiled rule with one read back from the engine
"""

import json
from typing import Any


def canonicalize_json(obj: Any) -> dict | list | Any:
    """
    Produce a deterministic, canonical representation of a JSON object.

    Args:
        obj: Python object (dict, list, tuple, bytes or primitive)

    Returns:
        Canonicalized version with sorted keys at all levels; bytes become
        ``0x``-prefixed hex, the form ABI-encoded values take on the wire

    Example:
        >>> canonicalize_json({"rawData": {"dataValues": [], "argumentTypes": []}, "flags": 0})
        {'flags': 0, 'rawData': {'argumentTypes': [], 'dataValues': []}}

    Note:
        Arrays preserve their input order: instruction words and table
        entries are positional and must never be reordered.
    """
    if isinstance(obj, dict):
        return {k: canonicalize_json(v) for k, v in sorted(obj.items())}

    elif isinstance(obj, (list, tuple)):
        return [canonicalize_json(item) for item in obj]

    elif isinstance(obj, bytes):
        return "0x" + obj.hex()

    else:
        return obj


def to_canonical_json_string(obj: Any) -> str:
    """
    Convert a Python object to a canonical JSON string.

    Example:
        >>> to_canonical_json_string({"pType": 2, "flags": 0})
        '{"flags":0,"pType":2}'
    """
    canonical = canonicalize_json(obj)

    # separators=(',', ':') removes spaces after commas and colons
    return json.dumps(canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def to_canonical_json_pretty(obj: Any) -> str:
    """Pretty-printed canonical JSON, for logs and debugging output."""
    canonical = canonicalize_json(obj)
    return json.dumps(canonical, sort_keys=True, indent=2, ensure_ascii=False)
