"""
Tests for JSON canonicalization of compiled rules.

Tests cover:
- Recursive key ordering
- Positional arrays (instruction words, tables) keep their order
- Byte-identical strings for equal content
"""

import json

import pytest

from rules_sdk.compiler.canonicalizer import (
    canonicalize_json,
    to_canonical_json_pretty,
    to_canonical_json_string,
)


class TestCanonicalizer:
    """JSON canonicalization for deterministic hashing."""

    @pytest.mark.anyio
    async def test_keys_sorted(self):
        result = canonicalize_json({"posEffects": [], "instructionSet": [], "negEffects": []})

        assert list(result.keys()) == ["instructionSet", "negEffects", "posEffects"]

    @pytest.mark.anyio
    async def test_nested_keys_sorted(self):
        obj = {
            "rawData": {"instructionSetIndex": [3], "dataValues": ["0x"], "argumentTypes": [1]},
            "flags": 0,
        }
        result = canonicalize_json(obj)

        assert list(result.keys()) == ["flags", "rawData"]
        assert list(result["rawData"].keys()) == [
            "argumentTypes",
            "dataValues",
            "instructionSetIndex",
        ]

    @pytest.mark.anyio
    async def test_instruction_words_keep_order(self):
        obj = {"instructionSet": [2, 0, 0, 5, 10, 0, 1]}

        assert canonicalize_json(obj)["instructionSet"] == [2, 0, 0, 5, 10, 0, 1]

    @pytest.mark.anyio
    async def test_tuples_become_lists(self):
        assert canonicalize_json({"operands": (1, 2)}) == {"operands": [1, 2]}

    @pytest.mark.anyio
    async def test_bytes_become_hex(self):
        assert canonicalize_json({"param": b"\x00\x05"}) == {"param": "0x0005"}

    @pytest.mark.anyio
    async def test_placeholder_entries_canonicalized(self):
        obj = {"placeHolders": [{"pType": 2, "flags": 0}, {"trackerValue": True, "flags": 2}]}
        result = canonicalize_json(obj)

        assert list(result["placeHolders"][0].keys()) == ["flags", "pType"]
        assert list(result["placeHolders"][1].keys()) == ["flags", "trackerValue"]

    @pytest.mark.anyio
    async def test_string_determinism(self):
        first = to_canonical_json_string({"z": 1, "a": {"c": 2, "b": 3}})
        second = to_canonical_json_string({"a": {"b": 3, "c": 2}, "z": 1})

        assert first == second
        assert first == '{"a":{"b":3,"c":2},"z":1}'

    @pytest.mark.anyio
    async def test_non_ascii_preserved(self):
        assert to_canonical_json_string({"errorMessage": "límite"}) == '{"errorMessage":"límite"}'

    @pytest.mark.anyio
    async def test_pretty_is_same_content(self):
        obj = {"text": "Flagged", "effectType": 1}
        pretty = to_canonical_json_pretty(obj)

        assert "\n" in pretty
        assert json.loads(pretty) == obj
