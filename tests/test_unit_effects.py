"""
Tests for effect compilation and the ABI helpers behind it.

Tests cover:
- Revert message extraction and quoting
- Event tags and parameter type sniffing
- Expression effects sharing one placeholder table
- Text surrogate and event parameter encoding
"""

import pytest
from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from rules_sdk.compiler.effects import compile_effect, parse_revert_message
from rules_sdk.compiler.encoding import (
    decode_event_param,
    decode_text,
    encode_event_param,
    encode_text,
    function_selector,
    text_surrogate,
)
from rules_sdk.compiler.instructions import PlaceholderTable
from rules_sdk.core.errors import MalformedExpressionError
from rules_sdk.domain.enums import EffectType, RawDataKind, ValueType
from rules_sdk.domain.models import EventEffect, ExpressionEffect, RevertEffect

DEAD_ADDRESS = "0x000000000000000000000000000000000000dead"


# =============================================================================
# Revert effects
# =============================================================================


class TestRevertEffects:
    """revert / revert("message")."""

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        ("effect", "message"),
        [
            ("revert", ""),
            ("revert()", ""),
            ("revert('Not allowed')", "Not allowed"),
            ('revert("Not allowed")', "Not allowed"),
            ("revert(Not allowed)", "Not allowed"),
            ("revert ('spaced')", "spaced"),
            ("  revert('padded')  ", "padded"),
            ("revert(\"it's blocked\")", "it's blocked"),
        ],
    )
    async def test_message(self, resolver, effect, message):
        compiled = compile_effect(effect, resolver, PlaceholderTable())

        assert compiled == RevertEffect(message=message)
        assert compiled.effect_type == EffectType.REVERT

    @pytest.mark.anyio
    async def test_only_one_quote_layer_removed(self):
        assert parse_revert_message("revert('\"quoted\"')") == '"quoted"'

    @pytest.mark.anyio
    async def test_wire_form(self):
        assert RevertEffect("stop").to_dict() == {
            "effectType": 0,
            "errorMessage": "stop",
            "text": "",
            "pType": 4,
            "param": "0x",
            "instructionSet": [],
            "rawData": {"instructionSetIndex": [], "argumentTypes": [], "dataValues": []},
        }


# =============================================================================
# Event effects
# =============================================================================


class TestEventEffects:
    """emit Tag[, param]."""

    @pytest.mark.anyio
    async def test_tag_only(self, resolver):
        compiled = compile_effect("emit Flagged", resolver, PlaceholderTable())

        assert compiled == EventEffect(tag="Flagged", param_type=ValueType.VOID)
        assert compiled.to_dict()["param"] == "0x"

    @pytest.mark.anyio
    async def test_numeric_param(self, resolver):
        compiled = compile_effect("emit Flagged, 5", resolver, PlaceholderTable())

        assert compiled.param_type == ValueType.UINT256
        assert compiled.param_value == 5
        assert compiled.encoded_param == encode(["uint256"], [5])

    @pytest.mark.anyio
    async def test_address_param_is_checksummed(self, resolver):
        compiled = compile_effect(f"emit Flagged, {DEAD_ADDRESS}", resolver, PlaceholderTable())

        assert compiled.param_type == ValueType.ADDRESS
        assert compiled.param_value == to_checksum_address(DEAD_ADDRESS)

    @pytest.mark.anyio
    async def test_text_param(self, resolver):
        compiled = compile_effect("emit Flagged, over the limit", resolver, PlaceholderTable())

        assert compiled.param_type == ValueType.STRING
        assert compiled.param_value == "over the limit"
        assert compiled.to_dict()["param"] == "0x" + encode(["string"], ["over the limit"]).hex()

    @pytest.mark.anyio
    @pytest.mark.parametrize("effect", ["emit", "emit   ", "emit , 5"])
    async def test_missing_tag(self, resolver, effect):
        with pytest.raises(MalformedExpressionError):
            compile_effect(effect, resolver, PlaceholderTable())

    @pytest.mark.anyio
    async def test_emit_prefix_needs_boundary(self, resolver):
        compiled = compile_effect("emitted == 1", resolver, PlaceholderTable())

        assert isinstance(compiled, ExpressionEffect)


# =============================================================================
# Expression effects
# =============================================================================


class TestExpressionEffects:
    """Effects that compile to instruction sets."""

    @pytest.mark.anyio
    async def test_tracker_update(self, resolver):
        compiled = compile_effect("TRU:balance -= 1", resolver, PlaceholderTable())

        assert compiled == ExpressionEffect(
            instruction_set=[2, 0, 0, 1, 6, 0, 1, 17, 1, 2, 0], raw_data=[]
        )
        assert compiled.effect_type == EffectType.EXPRESSION

    @pytest.mark.anyio
    async def test_effects_share_placeholder_table(self, resolver):
        table = PlaceholderTable()

        first = compile_effect("TRU:balance += value", resolver, table)
        second = compile_effect("TRU:testOne = value", resolver, table)

        assert len(table) == 3
        # value keeps the index assigned by the first effect
        assert first.instruction_set[2:4] == [2, 1]
        assert second.instruction_set[2:4] == [2, 1]

    @pytest.mark.anyio
    async def test_text_literal_raw_data(self, resolver):
        compiled = compile_effect("TRU:balance = info == blocked", resolver, PlaceholderTable())

        assert [entry.text for entry in compiled.raw_data] == ["blocked"]
        assert compiled.to_dict()["rawData"]["argumentTypes"] == [1]

    @pytest.mark.anyio
    async def test_malformed_expression(self, resolver):
        with pytest.raises(MalformedExpressionError):
            compile_effect("TRU:balance -=", resolver, PlaceholderTable())


# =============================================================================
# Encoding helpers
# =============================================================================


class TestEncoding:
    """keccak surrogates and ABI parameter encoding."""

    @pytest.mark.anyio
    async def test_text_surrogate(self):
        expected = int.from_bytes(keccak(encode(["string"], ["test"])), "big")

        assert text_surrogate("test") == expected

    @pytest.mark.anyio
    async def test_bytes_surrogate_differs_from_string(self):
        assert text_surrogate("0xabcd", RawDataKind.BYTES) != text_surrogate("0xabcd")

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        ("text", "kind"),
        [("hello world", RawDataKind.STRING), ("0x" + "12" * 40, RawDataKind.BYTES)],
    )
    async def test_decode_text_inverts_encode_text(self, text, kind):
        assert decode_text(encode_text(text, kind), kind) == text

    @pytest.mark.anyio
    async def test_forty_digit_decimal_is_not_an_address(self):
        value = "1234567890123456789012345678901234567890"

        param_type, number, _ = encode_event_param(value)

        assert param_type == ValueType.UINT256
        assert number == int(value)

    @pytest.mark.anyio
    async def test_oversized_decimal_falls_back_to_string(self):
        param_type, value, _ = encode_event_param(str(2**256))

        assert param_type == ValueType.STRING
        assert value == str(2**256)

    @pytest.mark.anyio
    async def test_decode_event_param(self):
        for raw in ("5", DEAD_ADDRESS, "hello"):
            param_type, value, encoded = encode_event_param(raw)
            assert decode_event_param(param_type, encoded) == value

        assert decode_event_param(ValueType.VOID, b"") is None

    @pytest.mark.anyio
    async def test_function_selector(self):
        assert function_selector("transfer(address, uint256)") == "0xa9059cbb"
