"""
Instruction set compiler.

Walks an expression tree in post-order (operands before the operator that
consumes them) and emits the flat instruction stream the engine evaluates.
Each emitted instruction writes exactly one memory slot; operator operands
are the slots of their already-emitted children.

All counters live in a ``CompilerState`` owned by one compilation, so
concurrent compilations never interfere.
"""

from dataclasses import dataclass, field

from rules_sdk.compiler.encoding import encode_text, text_surrogate
from rules_sdk.compiler.references import ReferenceResolver
from rules_sdk.compiler.tree import build_expression_tree
from rules_sdk.domain.enums import (
    OPERATOR_TO_OPCODE,
    Opcode,
    RawDataKind,
    ReferenceKind,
    WriteBackSource,
)
from rules_sdk.domain.models import (
    BinaryNode,
    CompiledExpression,
    ExpressionNode,
    InstructionSet,
    NumberLiteral,
    Placeholder,
    RawDataEntry,
    ReferenceBinding,
    ReferenceNode,
    TextLiteral,
    TrackerUpdateNode,
    UnaryNode,
)


class PlaceholderTable:
    """
    Ordered, deduplicated placeholder list.

    Placeholders are appended in first-reference order; referencing the same
    source again returns the existing index. A rule's effects share one table.
    """

    def __init__(self, entries: list[Placeholder] | None = None):
        self.entries: list[Placeholder] = []
        self._index: dict[tuple, int] = {}
        for entry in entries or []:
            self._add(entry)

    def __len__(self) -> int:
        return len(self.entries)

    def index_of(self, binding: ReferenceBinding) -> int:
        placeholder = placeholder_for(binding)
        existing = self._index.get(placeholder.key)
        if existing is not None:
            return existing
        return self._add(placeholder)

    def _add(self, placeholder: Placeholder) -> int:
        self.entries.append(placeholder)
        index = len(self.entries) - 1
        self._index.setdefault(placeholder.key, index)
        return index


def placeholder_for(binding: ReferenceBinding) -> Placeholder:
    """Build the placeholder that supplies a binding's runtime value."""
    return Placeholder(
        value_type=binding.value_type,
        reference_index=binding.index,
        is_tracker_value=binding.kind == ReferenceKind.TRACKER,
        is_foreign_call_value=binding.kind == ReferenceKind.FOREIGN_CALL,
        global_variable=binding.global_variable,
    )


@dataclass
class CompilerState:
    """Mutable state of a single compilation."""

    placeholders: PlaceholderTable
    instruction_set: InstructionSet = field(default_factory=InstructionSet)
    raw_data: list[RawDataEntry] = field(default_factory=list)
    interned: dict[tuple[str, RawDataKind], int] = field(default_factory=dict)

    def emit(self, opcode: Opcode, *operands: int) -> int:
        return self.instruction_set.append(opcode, *operands)

    def intern(self, literal: TextLiteral) -> int:
        """Emit a literal push of the text's surrogate, recording its raw data once."""
        position = self.instruction_set.word_count + 1
        slot = self.emit(Opcode.NUM, text_surrogate(literal.text, literal.kind))
        key = (literal.text, literal.kind)
        if key not in self.interned:
            self.interned[key] = position
            self.raw_data.append(
                RawDataEntry(
                    text=literal.text,
                    position=position,
                    kind=literal.kind,
                    encoded=encode_text(literal.text, literal.kind),
                )
            )
        return slot


def compile_expression_tree(
    tree: ExpressionNode, placeholders: PlaceholderTable | None = None
) -> CompiledExpression:
    """
    Compile an expression tree into a flat instruction set.

    Args:
        tree: Root node from ``build_expression_tree``
        placeholders: Table to look up and extend; a fresh one when omitted

    Returns:
        Instruction words, the placeholder table contents and the raw-data
        entries for interned text literals

    Example:
        >>> tree = build_expression_tree("3 + 4 > 5", ReferenceResolver())
        >>> compile_expression_tree(tree).instruction_set
        [0, 3, 0, 4, 5, 0, 1, 0, 5, 10, 2, 3]
    """
    if placeholders is None:
        placeholders = PlaceholderTable()
    state = CompilerState(placeholders=placeholders)
    _compile_node(tree, state)
    return CompiledExpression(
        instruction_set=state.instruction_set.to_words(),
        placeholders=list(state.placeholders.entries),
        raw_data=list(state.raw_data),
    )


def compile_expression(
    expression: str,
    resolver: ReferenceResolver,
    placeholders: PlaceholderTable | None = None,
    *,
    allow_updates: bool = False,
    max_length: int | None = None,
    max_depth: int | None = None,
) -> CompiledExpression:
    """Parse and compile rule text in one step."""
    tree = build_expression_tree(
        expression,
        resolver,
        allow_updates=allow_updates,
        max_length=max_length,
        max_depth=max_depth,
    )
    return compile_expression_tree(tree, placeholders)


def _compile_node(node: ExpressionNode, state: CompilerState) -> int:
    """Emit code for ``node`` and return the memory slot holding its value."""
    if isinstance(node, NumberLiteral):
        return state.emit(Opcode.NUM, node.value)

    if isinstance(node, TextLiteral):
        return state.intern(node)

    if isinstance(node, ReferenceNode):
        if node.key is not None:
            key_slot = _compile_node(node.key, state)
            return state.emit(Opcode.PLHM, node.binding.index, key_slot)
        return state.emit(Opcode.PLH, state.placeholders.index_of(node.binding))

    if isinstance(node, UnaryNode):
        operand_slot = _compile_node(node.operand, state)
        return state.emit(OPERATOR_TO_OPCODE[node.operator], operand_slot)

    if isinstance(node, BinaryNode):
        left_slot = _compile_node(node.left, state)
        right_slot = _compile_node(node.right, state)
        return state.emit(OPERATOR_TO_OPCODE[node.operator], left_slot, right_slot)

    if isinstance(node, TrackerUpdateNode):
        return _compile_update(node, state)

    raise TypeError(f"Unknown expression node {type(node).__name__}")


def _compile_update(node: TrackerUpdateNode, state: CompilerState) -> int:
    # Read current value, combine with the new value, then write back from memory
    target = node.target
    tracker_id = target.binding.index
    key_slot = None
    if target.key is not None:
        key_slot = _compile_node(target.key, state)
        target_slot = state.emit(Opcode.PLHM, tracker_id, key_slot)
    else:
        target_slot = state.emit(Opcode.PLH, state.placeholders.index_of(target.binding))

    value_slot = _compile_node(node.value, state)
    result_slot = state.emit(OPERATOR_TO_OPCODE[node.operator], target_slot, value_slot)

    if key_slot is not None:
        return state.emit(Opcode.TRUM, tracker_id, result_slot, key_slot, WriteBackSource.MEMORY)
    return state.emit(Opcode.TRU, tracker_id, result_slot, WriteBackSource.MEMORY)
