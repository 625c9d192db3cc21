"""
Tests for the instruction set compiler.

These tests verify:
- Post-order emission with one memory slot per instruction
- Operator precedence and associativity in the emitted stream
- Placeholder creation, flags and deduplication
- Text literal interning (keccak surrogate plus raw-data entry)
- Tracker reads, mapped tracker reads and tracker write-backs
- Deterministic output
"""

import anyio
import pytest
from eth_abi import encode

from rules_sdk.compiler.encoding import text_surrogate
from rules_sdk.compiler.instructions import (
    PlaceholderTable,
    compile_expression,
    compile_expression_tree,
)
from rules_sdk.compiler.tree import build_expression_tree
from rules_sdk.domain.enums import OPCODE_ARITY, GlobalVariable, Opcode, RawDataKind, ValueType
from rules_sdk.domain.models import Placeholder, RawDataEntry


def _opcodes(words: list[int]) -> list[Opcode]:
    """Opcodes of a flat stream, skipping operand words."""
    opcodes = []
    position = 0
    while position < len(words):
        opcode = Opcode(words[position])
        opcodes.append(opcode)
        position += 1 + OPCODE_ARITY[opcode]
    return opcodes


# =============================================================================
# Literal-only expressions
# =============================================================================


class TestLiteralExpressions:
    """Expressions made of number literals and operators only."""

    @pytest.mark.anyio
    async def test_scenario_nested_and(self, resolver):
        """Two ANDs over three comparisons, no placeholders."""
        compiled = compile_expression("3 + 4 > 5 AND (1 == 1 AND 2 == 2)", resolver)

        assert compiled.instruction_set == [
            0, 3, 0, 4, 5, 0, 1, 0, 5, 10, 2, 3,
            0, 1, 0, 1, 11, 5, 6, 0, 2, 0, 2, 11, 8, 9,
            12, 7, 10, 12, 4, 11,
        ]  # fmt: skip
        assert compiled.placeholders == []
        assert compiled.raw_data == []

    @pytest.mark.anyio
    async def test_scenario_counts(self, resolver):
        """Seven literal pushes, one addition, three comparisons, two ANDs."""
        words = compile_expression("3 + 4 > 5 AND (1 == 1 AND 2 == 2)", resolver).instruction_set
        opcodes = _opcodes(words)

        assert opcodes.count(Opcode.NUM) == 7
        assert opcodes.count(Opcode.ADD) == 1
        assert opcodes.count(Opcode.GT) + opcodes.count(Opcode.EQ) == 3
        assert opcodes.count(Opcode.AND) == 2
        assert len(opcodes) == 13

    @pytest.mark.anyio
    async def test_multiplication_binds_tighter_than_addition(self, resolver):
        compiled = compile_expression("1 + 2 * 3 == 7", resolver)

        assert compiled.instruction_set == [0, 1, 0, 2, 0, 3, 7, 1, 2, 5, 0, 3, 0, 7, 11, 4, 5]

    @pytest.mark.anyio
    async def test_parentheses_override_precedence(self, resolver):
        compiled = compile_expression("(1 + 2) * 3 == 9", resolver)

        assert compiled.instruction_set == [0, 1, 0, 2, 5, 0, 1, 0, 3, 7, 2, 3, 0, 9, 11, 4, 5]

    @pytest.mark.anyio
    async def test_subtraction_is_left_associative(self, resolver):
        compiled = compile_expression("10 - 4 - 3 == 3", resolver)

        assert compiled.instruction_set == [0, 10, 0, 4, 6, 0, 1, 0, 3, 6, 2, 3, 0, 3, 11, 4, 5]

    @pytest.mark.anyio
    async def test_and_is_loosest(self, resolver):
        """OR binds tighter than AND, so the final instruction is the AND."""
        words = compile_expression("1 == 1 OR 2 == 2 AND 3 == 3", resolver).instruction_set

        assert words[-3] == 12

    @pytest.mark.anyio
    async def test_extraneous_parentheses_are_ignored(self, resolver):
        plain = compile_expression("3 + 4 > 5", resolver)
        wrapped = compile_expression("((3 + 4 > 5))", resolver)
        inner = compile_expression("((3 + 4)) > (5)", resolver)

        assert plain.instruction_set == wrapped.instruction_set == inner.instruction_set

    @pytest.mark.anyio
    async def test_boolean_literals(self, resolver):
        compiled = compile_expression("value == true OR value == false", resolver)

        assert compiled.instruction_set[:7] == [2, 0, 0, 1, 11, 0, 1]
        assert compiled.instruction_set[7:14] == [2, 0, 0, 0, 11, 3, 4]

    @pytest.mark.anyio
    async def test_address_literal_is_numeric(self, resolver):
        compiled = compile_expression("to == 0x000000000000000000000000000000000000dEaD", resolver)

        assert compiled.instruction_set == [2, 0, 0, 0xDEAD, 11, 0, 1]
        assert compiled.raw_data == []

    @pytest.mark.anyio
    async def test_not_wraps_following_comparison(self, resolver):
        compiled = compile_expression("NOT value == 1", resolver)

        assert compiled.instruction_set == [2, 0, 0, 1, 11, 0, 1, 1, 2]


# =============================================================================
# Placeholders
# =============================================================================


class TestPlaceholders:
    """Placeholder table construction and deduplication."""

    @pytest.mark.anyio
    async def test_argument_placeholder(self, resolver):
        compiled = compile_expression("value > 5", resolver)

        assert compiled.instruction_set == [2, 0, 0, 5, 10, 0, 1]
        assert compiled.placeholders == [Placeholder(ValueType.UINT256, 1)]
        assert compiled.placeholders[0].flags == 0

    @pytest.mark.anyio
    async def test_repeated_argument_shares_placeholder(self, resolver):
        compiled = compile_expression("value > 5 AND value < 10", resolver)

        assert compiled.instruction_set == [
            2, 0, 0, 5, 10, 0, 1, 2, 0, 0, 10, 9, 3, 4, 12, 2, 5
        ]  # fmt: skip
        assert len(compiled.placeholders) == 1

    @pytest.mark.anyio
    async def test_placeholders_in_first_reference_order(self, resolver):
        compiled = compile_expression("info == test AND value > 1 AND to == 1", resolver)

        assert [p.reference_index for p in compiled.placeholders] == [2, 1, 0]

    @pytest.mark.anyio
    async def test_global_variable_placeholder(self, resolver):
        compiled = compile_expression("to == GV:MSG_SENDER", resolver)

        assert compiled.instruction_set == [2, 0, 2, 1, 11, 0, 1]
        sender = compiled.placeholders[1]
        assert sender.global_variable == GlobalVariable.MSG_SENDER
        assert sender.value_type == ValueType.ADDRESS
        assert sender.flags == 0x04

    @pytest.mark.anyio
    async def test_global_variable_alias(self, resolver):
        aliased = compile_expression("block.timestamp > 100", resolver)
        prefixed = compile_expression("GV:BLOCK_TIMESTAMP > 100", resolver)

        assert aliased == prefixed
        assert aliased.placeholders[0].flags == 0x08

    @pytest.mark.anyio
    async def test_foreign_call_placeholder(self, resolver):
        compiled = compile_expression("FC:getPrice(to) > 100", resolver)

        assert compiled.instruction_set == [2, 0, 0, 100, 10, 0, 1]
        placeholder = compiled.placeholders[0]
        assert placeholder.is_foreign_call_value
        assert placeholder.reference_index == 3
        assert placeholder.flags == 0x01

    @pytest.mark.anyio
    async def test_repeated_foreign_call_shares_placeholder(self, resolver):
        compiled = compile_expression("FC:getPrice(to) > FC:getPrice(value)", resolver)

        assert compiled.instruction_set == [2, 0, 2, 0, 10, 0, 1]
        assert len(compiled.placeholders) == 1

    @pytest.mark.anyio
    async def test_tracker_placeholder(self, resolver):
        compiled = compile_expression("TR:balance > 500", resolver)

        placeholder = compiled.placeholders[0]
        assert placeholder.is_tracker_value
        assert placeholder.reference_index == 1
        assert placeholder.flags == 0x02

    @pytest.mark.anyio
    async def test_shared_table_across_expressions(self, resolver):
        table = PlaceholderTable()
        first = compile_expression(
            "TRU:balance -= value", resolver, table, allow_updates=True
        )
        second = compile_expression(
            "TRU:balance += value", resolver, table, allow_updates=True
        )

        assert len(table) == 2
        assert first.instruction_set[:4] == second.instruction_set[:4] == [2, 0, 2, 1]

    @pytest.mark.anyio
    async def test_placeholder_wire_form(self):
        placeholder = Placeholder(ValueType.ADDRESS, 0, global_variable=GlobalVariable.TX_ORIGIN)

        assert placeholder.to_dict() == {
            "pType": 0,
            "typeSpecificIndex": 0,
            "trackerValue": False,
            "foreignCall": False,
            "flags": 0x14,
        }
        assert Placeholder.from_dict(placeholder.to_dict()) == placeholder


# =============================================================================
# Text literals
# =============================================================================


class TestTextLiterals:
    """Interning of non-numeric literals."""

    @pytest.mark.anyio
    async def test_text_literal_surrogate_and_raw_data(self, resolver):
        compiled = compile_expression("info == test", resolver)

        assert compiled.instruction_set == [2, 0, 0, text_surrogate("test"), 11, 0, 1]
        assert compiled.raw_data == [
            RawDataEntry(
                text="test",
                position=3,
                kind=RawDataKind.STRING,
                encoded=encode(["string"], ["test"]),
            )
        ]

    @pytest.mark.anyio
    async def test_raw_data_position_is_operand_word(self, resolver):
        compiled = compile_expression("info == test", resolver)

        position = compiled.raw_data[0].position
        assert compiled.instruction_set[position - 1] == 0
        assert compiled.instruction_set[position] == text_surrogate("test")

    @pytest.mark.anyio
    async def test_consecutive_words_form_one_literal(self, resolver):
        compiled = compile_expression("info == bORe test", resolver)

        assert [entry.text for entry in compiled.raw_data] == ["bORe test"]
        assert compiled.instruction_set[3] == text_surrogate("bORe test")

    @pytest.mark.anyio
    async def test_quoted_literal(self, resolver):
        compiled = compile_expression('info == "hello AND world"', resolver)

        assert [entry.text for entry in compiled.raw_data] == ["hello AND world"]
        assert compiled.instruction_set[-3] == 11

    @pytest.mark.anyio
    async def test_repeated_text_interned_once(self, resolver):
        compiled = compile_expression("info == test OR info == test", resolver)

        assert len(compiled.raw_data) == 1
        assert compiled.raw_data[0].position == 3
        assert compiled.instruction_set[10] == compiled.instruction_set[3]

    @pytest.mark.anyio
    async def test_reference_syntax_inside_quotes_stays_text(self, resolver):
        text = "call FC:getPrice(to) now"
        compiled = compile_expression(f'info == "{text}"', resolver)

        assert [entry.text for entry in compiled.raw_data] == [text]
        assert compiled.instruction_set[3] == text_surrogate(text)
        assert len(compiled.placeholders) == 1

    @pytest.mark.anyio
    async def test_long_hex_is_bytes_literal(self, resolver):
        payload = "0x" + "ab" * 40
        compiled = compile_expression(f"info == {payload}", resolver)

        entry = compiled.raw_data[0]
        assert entry.kind == RawDataKind.BYTES
        assert entry.encoded == encode(["bytes"], [bytes.fromhex("ab" * 40)])
        assert compiled.instruction_set[3] == text_surrogate(payload, RawDataKind.BYTES)


# =============================================================================
# Trackers
# =============================================================================


class TestTrackerInstructions:
    """Tracker reads and write-backs."""

    @pytest.mark.anyio
    async def test_mapped_tracker_read(self, resolver):
        compiled = compile_expression("TR:limits(to) == 1", resolver)

        assert compiled.instruction_set == [2, 0, 4, 2, 0, 0, 1, 11, 1, 2]
        assert len(compiled.placeholders) == 1

    @pytest.mark.anyio
    async def test_tracker_update(self, resolver):
        compiled = compile_expression("TRU:balance -= 1", resolver, allow_updates=True)

        assert compiled.instruction_set == [2, 0, 0, 1, 6, 0, 1, 17, 1, 2, 0]
        assert compiled.placeholders[0].is_tracker_value

    @pytest.mark.anyio
    async def test_tracker_assignment(self, resolver):
        compiled = compile_expression("TRU:balance = value", resolver, allow_updates=True)

        assert compiled.instruction_set == [2, 0, 2, 1, 3, 0, 1, 17, 1, 2, 0]

    @pytest.mark.anyio
    async def test_mapped_tracker_updates_joined_by_and(self, resolver):
        compiled = compile_expression(
            "TRU:limits(to) -= 1 AND TRU:testTwo(to) -= 1", resolver, allow_updates=True
        )

        assert compiled.instruction_set == [
            2, 0, 4, 2, 0, 0, 1, 6, 1, 2, 18, 2, 3, 0, 0,
            2, 0, 4, 6, 5, 0, 1, 6, 6, 7, 18, 6, 8, 5, 0,
            12, 4, 9,
        ]  # fmt: skip


# =============================================================================
# Determinism
# =============================================================================


class TestDeterminism:
    """Same input always yields identical output."""

    @pytest.mark.anyio
    async def test_repeated_compilation_identical(self, resolver):
        text = "(FC:getPrice(to) + 4 > value AND info == test) OR TR:balance == 5"

        results = [compile_expression(text, resolver) for _ in range(5)]

        assert all(result == results[0] for result in results)

    @pytest.mark.anyio
    async def test_concurrent_compilation_identical(self, resolver):
        """Compilations in worker threads never share state."""
        text = "value + 1 > 2 AND info == concurrent"
        results = []

        async def compile_in_thread():
            results.append(await anyio.to_thread.run_sync(compile_expression, text, resolver))

        async with anyio.create_task_group() as tg:
            for _ in range(8):
                tg.start_soon(compile_in_thread)

        assert len(results) == 8
        assert all(result == results[0] for result in results)

    @pytest.mark.anyio
    async def test_tree_compiles_same_as_text(self, resolver):
        tree = build_expression_tree("value > 5", resolver)

        assert compile_expression_tree(tree) == compile_expression("value > 5", resolver)
