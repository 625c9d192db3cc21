"""
Domain enums matching the on-chain rules engine encodings.

These enums provide type-safe representations of the integer codes the
engine stores (parameter types, opcodes, effect kinds) and are used
throughout the compiler and decompiler for validation and lookups.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class ValueType(IntEnum):
    """Parameter type of a value - matches the engine's PT enumeration."""

    ADDRESS = 0
    STRING = 1
    UINT256 = 2
    BOOL = 3
    VOID = 4
    BYTES = 5
    STATIC_TYPE_ARRAY = 6
    DYNAMIC_TYPE_ARRAY = 7

    @classmethod
    def from_type_name(cls, name: str) -> ValueType | None:
        """Map a declared type name (``uint256``, ``string[]`` ...) to a ValueType."""
        return TYPE_NAME_TO_VALUE_TYPE.get(name.strip())


TYPE_NAME_TO_VALUE_TYPE = {
    "address": ValueType.ADDRESS,
    "string": ValueType.STRING,
    "uint256": ValueType.UINT256,
    "bool": ValueType.BOOL,
    "void": ValueType.VOID,
    "bytes": ValueType.BYTES,
    # Arrays of fixed-width elements vs arrays of dynamically sized elements
    "uint256[]": ValueType.STATIC_TYPE_ARRAY,
    "address[]": ValueType.STATIC_TYPE_ARRAY,
    "bool[]": ValueType.STATIC_TYPE_ARRAY,
    "string[]": ValueType.DYNAMIC_TYPE_ARRAY,
    "bytes[]": ValueType.DYNAMIC_TYPE_ARRAY,
}

# Name rendered for each type when a definition is read back
VALUE_TYPE_NAMES = {
    ValueType.ADDRESS: "address",
    ValueType.STRING: "string",
    ValueType.UINT256: "uint256",
    ValueType.BOOL: "bool",
    ValueType.VOID: "void",
    ValueType.BYTES: "bytes",
    ValueType.STATIC_TYPE_ARRAY: "uint256[]",
    ValueType.DYNAMIC_TYPE_ARRAY: "string[]",
}


class Opcode(IntEnum):
    """
    Instruction opcodes.

    Every emitted instruction occupies one memory slot in the evaluator;
    operands of operator instructions are slot indices.
    """

    NUM = 0
    NOT = 1
    PLH = 2
    ASSIGN = 3
    PLHM = 4
    ADD = 5
    SUB = 6
    MUL = 7
    DIV = 8
    LT = 9
    GT = 10
    EQ = 11
    AND = 12
    OR = 13
    GTE = 14
    LTE = 15
    NEQ = 16
    TRU = 17
    TRUM = 18


# Number of operand words that follow each opcode in the flat stream
OPCODE_ARITY = {
    Opcode.NUM: 1,
    Opcode.NOT: 1,
    Opcode.PLH: 1,
    Opcode.ASSIGN: 2,
    Opcode.PLHM: 2,
    Opcode.ADD: 2,
    Opcode.SUB: 2,
    Opcode.MUL: 2,
    Opcode.DIV: 2,
    Opcode.LT: 2,
    Opcode.GT: 2,
    Opcode.EQ: 2,
    Opcode.AND: 2,
    Opcode.OR: 2,
    Opcode.GTE: 2,
    Opcode.LTE: 2,
    Opcode.NEQ: 2,
    Opcode.TRU: 3,
    Opcode.TRUM: 4,
}


class Operator(str, Enum):
    """Operators accepted in rule syntax."""

    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    LT = "<"
    GT = ">"
    EQ = "=="
    NEQ = "!="
    GTE = ">="
    LTE = "<="
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    ASSIGN = "="
    ADD_ASSIGN = "+="
    SUB_ASSIGN = "-="
    MUL_ASSIGN = "*="
    DIV_ASSIGN = "/="


OPERATOR_TO_OPCODE = {
    Operator.ADD: Opcode.ADD,
    Operator.SUB: Opcode.SUB,
    Operator.MUL: Opcode.MUL,
    Operator.DIV: Opcode.DIV,
    Operator.LT: Opcode.LT,
    Operator.GT: Opcode.GT,
    Operator.EQ: Opcode.EQ,
    Operator.NEQ: Opcode.NEQ,
    Operator.GTE: Opcode.GTE,
    Operator.LTE: Opcode.LTE,
    Operator.AND: Opcode.AND,
    Operator.OR: Opcode.OR,
    Operator.NOT: Opcode.NOT,
    # Compound assignments compile to the arithmetic opcode before write-back
    Operator.ASSIGN: Opcode.ASSIGN,
    Operator.ADD_ASSIGN: Opcode.ADD,
    Operator.SUB_ASSIGN: Opcode.SUB,
    Operator.MUL_ASSIGN: Opcode.MUL,
    Operator.DIV_ASSIGN: Opcode.DIV,
}

OPCODE_TO_OPERATOR = {
    Opcode.ADD: Operator.ADD,
    Opcode.SUB: Operator.SUB,
    Opcode.MUL: Operator.MUL,
    Opcode.DIV: Operator.DIV,
    Opcode.LT: Operator.LT,
    Opcode.GT: Operator.GT,
    Opcode.EQ: Operator.EQ,
    Opcode.NEQ: Operator.NEQ,
    Opcode.GTE: Operator.GTE,
    Opcode.LTE: Operator.LTE,
    Opcode.AND: Operator.AND,
    Opcode.OR: Operator.OR,
}

ASSIGNMENT_OPERATORS = frozenset(
    {
        Operator.ASSIGN,
        Operator.ADD_ASSIGN,
        Operator.SUB_ASSIGN,
        Operator.MUL_ASSIGN,
        Operator.DIV_ASSIGN,
    }
)


class WriteBackSource(IntEnum):
    """Where a tracker write-back instruction reads its new value from."""

    MEMORY = 0
    PLACEHOLDER = 1


class EffectType(IntEnum):
    """Kind of rule effect - matches the engine's EffectType enumeration."""

    REVERT = 0
    EVENT = 1
    EXPRESSION = 2


class ReferenceKind(str, Enum):
    """Source of a runtime value referenced by an expression."""

    ARGUMENT = "ARGUMENT"
    TRACKER = "TRACKER"
    FOREIGN_CALL = "FOREIGN_CALL"
    GLOBAL_VARIABLE = "GLOBAL_VARIABLE"


class GlobalVariable(str, Enum):
    """
    Transaction/block context values readable from a rule.

    The placeholder flag and value type of each are fixed by the engine.
    """

    MSG_SENDER = "MSG_SENDER"
    BLOCK_TIMESTAMP = "BLOCK_TIMESTAMP"
    MSG_DATA = "MSG_DATA"
    BLOCK_NUMBER = "BLOCK_NUMBER"
    TX_ORIGIN = "TX_ORIGIN"

    @property
    def flag(self) -> int:
        return GLOBAL_VARIABLE_FLAGS[self]

    @property
    def value_type(self) -> ValueType:
        return GLOBAL_VARIABLE_TYPES[self]


GLOBAL_VARIABLE_FLAGS = {
    GlobalVariable.MSG_SENDER: 0x04,
    GlobalVariable.BLOCK_TIMESTAMP: 0x08,
    GlobalVariable.MSG_DATA: 0x0C,
    GlobalVariable.BLOCK_NUMBER: 0x10,
    GlobalVariable.TX_ORIGIN: 0x14,
}

GLOBAL_VARIABLE_TYPES = {
    GlobalVariable.MSG_SENDER: ValueType.ADDRESS,
    GlobalVariable.BLOCK_TIMESTAMP: ValueType.UINT256,
    GlobalVariable.MSG_DATA: ValueType.BYTES,
    GlobalVariable.BLOCK_NUMBER: ValueType.UINT256,
    GlobalVariable.TX_ORIGIN: ValueType.ADDRESS,
}

# Solidity-style spellings accepted as aliases of the GV: form
GLOBAL_VARIABLE_ALIASES = {
    "msg.sender": GlobalVariable.MSG_SENDER,
    "block.timestamp": GlobalVariable.BLOCK_TIMESTAMP,
    "msg.data": GlobalVariable.MSG_DATA,
    "block.number": GlobalVariable.BLOCK_NUMBER,
    "tx.origin": GlobalVariable.TX_ORIGIN,
}

FOREIGN_CALL_FLAG = 0x01
TRACKER_FLAG = 0x02


class RawDataKind(IntEnum):
    """Encoding of an interned literal in the raw-data table."""

    STRING = 1
    BYTES = 2


class EncodedIndexType(IntEnum):
    """Source kind of a value passed to a foreign call."""

    ARGUMENT = 0
    FOREIGN_CALL = 1
    TRACKER = 2
    MAPPED_TRACKER = 4
