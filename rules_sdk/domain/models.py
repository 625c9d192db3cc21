"""
Core data model shared by the compiler and decompiler.

All records are frozen dataclasses: tables produced by one stage are
read-only inputs to the next. The only mutable structures are the
append-only ``InstructionSet`` and the placeholder table, which are owned
by a single compilation at a time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from rules_sdk.domain.enums import (
    FOREIGN_CALL_FLAG,
    TRACKER_FLAG,
    EffectType,
    EncodedIndexType,
    GlobalVariable,
    Opcode,
    Operator,
    RawDataKind,
    ReferenceKind,
    ValueType,
)

# =============================================================================
# Name tables
# =============================================================================


@dataclass(frozen=True)
class ArgumentBinding:
    """A calling-function parameter: name, declared position and type."""

    name: str
    positional_index: int
    value_type: ValueType


@dataclass(frozen=True)
class NameBinding:
    """
    A row of a caller-supplied name table (foreign calls or trackers).

    ``mapped`` marks mapped trackers, which are read with a key.
    """

    name: str
    id: int
    value_type: ValueType = ValueType.UINT256
    mapped: bool = False


@dataclass(frozen=True)
class ReferenceBinding:
    """The resolved source of one named reference in an expression."""

    kind: ReferenceKind
    name: str
    index: int
    value_type: ValueType
    is_update: bool = False
    mapped: bool = False
    global_variable: GlobalVariable | None = None


# =============================================================================
# Expression tree
# =============================================================================


@dataclass(frozen=True)
class NumberLiteral:
    value: int


@dataclass(frozen=True)
class TextLiteral:
    """Non-numeric literal; compiled as a keccak surrogate plus a raw-data entry."""

    text: str
    kind: RawDataKind = RawDataKind.STRING


@dataclass(frozen=True)
class ReferenceNode:
    """Runtime value read through a placeholder; ``key`` is set for mapped trackers."""

    binding: ReferenceBinding
    key: ExpressionNode | None = None


@dataclass(frozen=True)
class UnaryNode:
    operator: Operator
    operand: ExpressionNode


@dataclass(frozen=True)
class BinaryNode:
    operator: Operator
    left: ExpressionNode
    right: ExpressionNode


@dataclass(frozen=True)
class TrackerUpdateNode:
    """``TRU:name <op>= value``; only produced for effects."""

    operator: Operator
    target: ReferenceNode
    value: ExpressionNode


ExpressionNode = (
    NumberLiteral | TextLiteral | ReferenceNode | UnaryNode | BinaryNode | TrackerUpdateNode
)


# =============================================================================
# Compiled output
# =============================================================================


@dataclass(frozen=True)
class Placeholder:
    """A runtime value slot the engine fills before evaluation."""

    value_type: ValueType
    reference_index: int
    is_tracker_value: bool = False
    is_foreign_call_value: bool = False
    global_variable: GlobalVariable | None = None

    @property
    def key(self) -> tuple:
        return (
            self.reference_index,
            self.is_tracker_value,
            self.is_foreign_call_value,
            self.global_variable,
        )

    @property
    def flags(self) -> int:
        if self.global_variable is not None:
            return self.global_variable.flag
        if self.is_foreign_call_value:
            return FOREIGN_CALL_FLAG
        if self.is_tracker_value:
            return TRACKER_FLAG
        return 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "pType": int(self.value_type),
            "typeSpecificIndex": self.reference_index,
            "trackerValue": self.is_tracker_value,
            "foreignCall": self.is_foreign_call_value,
            "flags": self.flags,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Placeholder:
        flags = int(data.get("flags", 0))
        global_variable = next((gv for gv in GlobalVariable if gv.flag == flags), None)
        return cls(
            value_type=ValueType(int(data["pType"])),
            reference_index=int(data["typeSpecificIndex"]),
            is_tracker_value=bool(data.get("trackerValue", flags == TRACKER_FLAG)),
            is_foreign_call_value=bool(data.get("foreignCall", flags == FOREIGN_CALL_FLAG)),
            global_variable=global_variable,
        )


@dataclass(frozen=True)
class Instruction:
    opcode: Opcode
    operands: tuple[int, ...]

    def words(self) -> list[int]:
        return [int(self.opcode), *self.operands]


@dataclass
class InstructionSet:
    """
    Append-only instruction list.

    Slot ``n`` of evaluator memory holds the result of the ``n``-th
    instruction, so the slot count always equals the instruction count.
    """

    instructions: list[Instruction] = field(default_factory=list)

    def append(self, opcode: Opcode, *operands: int) -> int:
        """Append an instruction and return the memory slot it writes."""
        self.instructions.append(Instruction(opcode, tuple(int(o) for o in operands)))
        return len(self.instructions) - 1

    @property
    def word_count(self) -> int:
        return sum(1 + len(instruction.operands) for instruction in self.instructions)

    def to_words(self) -> list[int]:
        """Flatten to the wire form: opcode followed by its operands, in order."""
        words: list[int] = []
        for instruction in self.instructions:
            words.extend(instruction.words())
        return words


@dataclass(frozen=True)
class RawDataEntry:
    """
    Original text of an interned literal.

    ``position`` is the flat word index of the literal-push operand.
    """

    text: str
    position: int
    kind: RawDataKind = RawDataKind.STRING
    encoded: bytes = b""


def raw_data_to_dict(entries: list[RawDataEntry]) -> dict[str, list]:
    """Columnar wire form of a raw-data table."""
    return {
        "instructionSetIndex": [entry.position for entry in entries],
        "argumentTypes": [int(entry.kind) for entry in entries],
        "dataValues": ["0x" + entry.encoded.hex() for entry in entries],
    }


@dataclass(frozen=True)
class CompiledExpression:
    instruction_set: list[int]
    placeholders: list[Placeholder]
    raw_data: list[RawDataEntry]


@dataclass(frozen=True)
class RevertEffect:
    message: str

    effect_type = EffectType.REVERT

    def to_dict(self) -> dict[str, Any]:
        return {
            "effectType": int(self.effect_type),
            "errorMessage": self.message,
            "text": "",
            "pType": int(ValueType.VOID),
            "param": "0x",
            "instructionSet": [],
            "rawData": raw_data_to_dict([]),
        }


@dataclass(frozen=True)
class EventEffect:
    tag: str
    param_type: ValueType = ValueType.VOID
    param_value: str | int | None = None
    encoded_param: bytes = b""

    effect_type = EffectType.EVENT

    def to_dict(self) -> dict[str, Any]:
        return {
            "effectType": int(self.effect_type),
            "errorMessage": "",
            "text": self.tag,
            "pType": int(self.param_type),
            "param": "0x" + self.encoded_param.hex(),
            "instructionSet": [],
            "rawData": raw_data_to_dict([]),
        }


@dataclass(frozen=True)
class ExpressionEffect:
    instruction_set: list[int]
    raw_data: list[RawDataEntry]

    effect_type = EffectType.EXPRESSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "effectType": int(self.effect_type),
            "errorMessage": "",
            "text": "",
            "pType": int(ValueType.VOID),
            "param": "0x",
            "instructionSet": list(self.instruction_set),
            "rawData": raw_data_to_dict(self.raw_data),
        }


EffectRecord = RevertEffect | EventEffect | ExpressionEffect


@dataclass(frozen=True)
class RuleCompilationResult:
    """Everything committed on-chain for one rule."""

    condition_instruction_set: list[int]
    condition_raw_data: list[RawDataEntry]
    condition_placeholders: list[Placeholder]
    effect_placeholders: list[Placeholder]
    positive_effects: list[EffectRecord]
    negative_effects: list[EffectRecord]

    def to_dict(self) -> dict[str, Any]:
        return {
            "instructionSet": list(self.condition_instruction_set),
            "rawData": raw_data_to_dict(self.condition_raw_data),
            "placeHolders": [p.to_dict() for p in self.condition_placeholders],
            "effectPlaceHolders": [p.to_dict() for p in self.effect_placeholders],
            "posEffects": [effect.to_dict() for effect in self.positive_effects],
            "negEffects": [effect.to_dict() for effect in self.negative_effects],
        }


# =============================================================================
# Foreign call definitions
# =============================================================================


@dataclass(frozen=True)
class EncodedIndex:
    """Source of one value passed to a foreign call."""

    index_type: EncodedIndexType
    index: int

    def to_dict(self) -> dict[str, int]:
        return {"eType": int(self.index_type), "index": self.index}


@dataclass(frozen=True)
class ForeignCallDefinition:
    name: str
    address: str
    function: str
    selector: str
    return_type: ValueType
    parameter_types: list[ValueType]
    encoded_indices: list[EncodedIndex]
    mapped_tracker_key_indices: list[EncodedIndex]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "function": self.function,
            "signature": self.selector,
            "returnType": int(self.return_type),
            "parameterTypes": [int(t) for t in self.parameter_types],
            "encodedIndices": [index.to_dict() for index in self.encoded_indices],
            "mappedTrackerKeyIndices": [
                index.to_dict() for index in self.mapped_tracker_key_indices
            ],
        }
