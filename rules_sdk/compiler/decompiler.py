"""
Decompiler: instruction set back to rule syntax.

Replays the instruction stream once, keeping a rendered fragment for every
memory slot. Operators combine the fragments of their operand slots;
parentheses are inserted only where re-parsing would otherwise group
differently, except that AND/OR are always wrapped as ``( l OP r )``.
The outermost such wrap is dropped from the final text.

The result is functionally equivalent to the authored syntax: compiling it
again yields the same instruction stream. Whitespace and redundant
parentheses of the original are not preserved.
"""

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from rules_sdk.compiler.encoding import text_surrogate
from rules_sdk.compiler.references import (
    FOREIGN_CALL_PREFIX,
    GLOBAL_VARIABLE_PREFIX,
    TRACKER_PREFIX,
    TRACKER_UPDATE_PREFIX,
)
from rules_sdk.compiler.tokenizer import KEYWORDS
from rules_sdk.compiler.tree import BOOLEAN_LITERALS
from rules_sdk.core.errors import DecompilationError
from rules_sdk.domain.enums import (
    OPCODE_ARITY,
    OPCODE_TO_OPERATOR,
    Opcode,
    RawDataKind,
    WriteBackSource,
)
from rules_sdk.domain.models import (
    ArgumentBinding,
    EffectRecord,
    EventEffect,
    InstructionSet,
    NameBinding,
    Placeholder,
    RawDataEntry,
    RevertEffect,
)

# Binding strength of rendered fragments; higher binds tighter
_LOGICAL = 1
_UPDATE = 2
_COMPARISON = 3
_ADDITIVE = 4
_MULTIPLICATIVE = 5
_ATOM = 6

_PRECEDENCE = {
    Opcode.ADD: _ADDITIVE,
    Opcode.SUB: _ADDITIVE,
    Opcode.MUL: _MULTIPLICATIVE,
    Opcode.DIV: _MULTIPLICATIVE,
    Opcode.LT: _COMPARISON,
    Opcode.GT: _COMPARISON,
    Opcode.EQ: _COMPARISON,
    Opcode.NEQ: _COMPARISON,
    Opcode.GTE: _COMPARISON,
    Opcode.LTE: _COMPARISON,
}

_PLAIN_WORD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class _Fragment:
    text: str
    precedence: int
    opcode: Opcode | None = None
    operands: tuple[int, ...] = ()
    wrapped: bool = False


def decompile_instruction_set(
    instruction_set: Sequence[int] | InstructionSet,
    placeholder_names: Sequence[str],
    raw_data: Iterable[RawDataEntry] = (),
    tracker_names: Mapping[int, str] | None = None,
    reserved_names: Iterable[str] = (),
) -> str:
    """
    Reconstruct rule syntax from a stored instruction set.

    Args:
        instruction_set: Flat instruction words (or an InstructionSet)
        placeholder_names: Rendered name of each placeholder, by index
                           (see ``resolve_placeholder_names``)
        raw_data: Raw-data entries of this instruction set
        tracker_names: Tracker ID to name, needed for mapped reads and
                       tracker write-backs
        reserved_names: Extra words that would parse as references (argument
                        names); literal text containing them is quoted

    Returns:
        Rule text such as ``"3 + 4 > 5 AND ( 1 == 1 AND 2 == 2 )"``

    Raises:
        DecompilationError: If the stream is malformed or references a
                            placeholder, slot or tracker that does not exist

    Example:
        >>> decompile_instruction_set([2, 0, 0, 5, 10, 0, 1], ["value"])
        'value > 5'
    """
    words = (
        instruction_set.to_words()
        if isinstance(instruction_set, InstructionSet)
        else _to_words(instruction_set)
    )
    decoder = _Decoder(
        placeholder_names, list(raw_data), tracker_names or {}, set(reserved_names)
    )
    return decoder.run(words)


def _to_words(instruction_set: Iterable[int]) -> list[int]:
    words = []
    for position, word in enumerate(instruction_set):
        try:
            words.append(int(word))
        except (TypeError, ValueError) as exc:
            raise DecompilationError(
                f"Instruction word {word!r} at word {position} is not an integer",
                details={"position": position, "word": repr(word)},
            ) from exc
    return words


class _Decoder:
    def __init__(
        self,
        placeholder_names: Sequence[str],
        raw_data: list[RawDataEntry],
        tracker_names: Mapping[int, str],
        reserved_names: set[str],
    ):
        self.placeholder_names = list(placeholder_names)
        self.tracker_names = tracker_names
        self.raw_by_position = {entry.position: entry for entry in raw_data}
        self.raw_by_surrogate = {
            text_surrogate(entry.text, entry.kind): entry for entry in raw_data
        }
        self.reserved = set(self.placeholder_names) | reserved_names
        self.memory: list[_Fragment] = []

    def run(self, words: list[int]) -> str:
        position = 0
        while position < len(words):
            try:
                opcode = Opcode(words[position])
            except ValueError:
                raise DecompilationError(
                    f"Unknown opcode {words[position]} at word {position}",
                    details={"position": position, "opcode": words[position]},
                )
            arity = OPCODE_ARITY[opcode]
            operands = words[position + 1 : position + 1 + arity]
            if len(operands) != arity:
                raise DecompilationError(
                    f"Truncated {opcode.name} instruction at word {position}",
                    details={"position": position, "expected": arity, "found": len(operands)},
                )
            self.memory.append(self._render(opcode, operands, position))
            position += 1 + arity

        if not self.memory:
            return ""
        result = self.memory[-1]
        if result.wrapped:
            return result.text[2:-2]
        return result.text

    # -------------------------------------------------------------------------
    # Per-opcode rendering
    # -------------------------------------------------------------------------

    def _render(self, opcode: Opcode, operands: list[int], position: int) -> _Fragment:
        if opcode == Opcode.NUM:
            return _Fragment(self._literal(operands[0], position + 1), _ATOM)

        if opcode == Opcode.PLH:
            return _Fragment(self._placeholder(operands[0]), _ATOM)

        if opcode == Opcode.PLHM:
            key = self._slot(operands[1])
            name = self._tracker(operands[0])
            return _Fragment(f"{TRACKER_PREFIX}{name}({key.text})", _ATOM)

        if opcode == Opcode.NOT:
            operand = self._slot(operands[0])
            return _Fragment(f"NOT {operand.text}", _LOGICAL, opcode, tuple(operands))

        if opcode in (Opcode.AND, Opcode.OR):
            left, right = self._slot(operands[0]), self._slot(operands[1])
            text = f"( {left.text} {opcode.name} {right.text} )"
            return _Fragment(text, _ATOM, opcode, tuple(operands), wrapped=True)

        if opcode == Opcode.ASSIGN:
            self._slot(operands[0])
            value = self._slot(operands[1])
            return _Fragment(value.text, _UPDATE, opcode, tuple(operands))

        if opcode in _PRECEDENCE:
            precedence = _PRECEDENCE[opcode]
            left, right = self._slot(operands[0]), self._slot(operands[1])
            if precedence == _COMPARISON:
                left_text = _wrap(left, left.precedence <= precedence)
            else:
                left_text = _wrap(left, left.precedence < precedence)
            right_text = _wrap(right, right.precedence <= precedence)
            symbol = OPCODE_TO_OPERATOR[opcode].value
            return _Fragment(
                f"{left_text} {symbol} {right_text}", precedence, opcode, tuple(operands)
            )

        if opcode == Opcode.TRU:
            tracker_id, value_slot, source = operands
            target = f"{TRACKER_UPDATE_PREFIX}{self._tracker(tracker_id)}"
            return self._write_back(target, value_slot, source)

        if opcode == Opcode.TRUM:
            tracker_id, value_slot, key_slot, source = operands
            key = self._slot(key_slot)
            target = f"{TRACKER_UPDATE_PREFIX}{self._tracker(tracker_id)}({key.text})"
            return self._write_back(target, value_slot, source)

        raise DecompilationError(f"Unsupported opcode {opcode.name}", details={"opcode": opcode})

    def _write_back(self, target: str, value_slot: int, source: int) -> _Fragment:
        if source == WriteBackSource.PLACEHOLDER:
            return _Fragment(f"{target} = {self._placeholder(value_slot)}", _UPDATE)
        if source != WriteBackSource.MEMORY:
            raise DecompilationError(
                f"Unknown write-back source {source}", details={"source": source}
            )

        value = self._slot(value_slot)
        if value.opcode == Opcode.ASSIGN:
            assigned = self._slot(value.operands[1])
            rendered = _wrap(assigned, assigned.precedence <= _UPDATE)
            return _Fragment(f"{target} = {rendered}", _UPDATE)
        if value.opcode in (Opcode.ADD, Opcode.SUB, Opcode.MUL, Opcode.DIV):
            # Compound assignment: the operator's right operand is the new value
            symbol = OPCODE_TO_OPERATOR[value.opcode].value
            operand = self._slot(value.operands[1])
            rendered = _wrap(operand, operand.precedence <= _UPDATE)
            return _Fragment(f"{target} {symbol}= {rendered}", _UPDATE)
        return _Fragment(f"{target} = {_wrap(value, value.precedence <= _UPDATE)}", _UPDATE)

    # -------------------------------------------------------------------------
    # Operand lookups
    # -------------------------------------------------------------------------

    def _slot(self, slot: int) -> _Fragment:
        if not 0 <= slot < len(self.memory):
            raise DecompilationError(
                f"Operand refers to memory slot {slot} before it is written",
                details={"slot": slot, "written": len(self.memory)},
            )
        return self.memory[slot]

    def _placeholder(self, index: int) -> str:
        if not 0 <= index < len(self.placeholder_names):
            raise DecompilationError(
                f"Placeholder index {index} has no name",
                details={"index": index, "placeholders": len(self.placeholder_names)},
            )
        return self.placeholder_names[index]

    def _tracker(self, tracker_id: int) -> str:
        name = self.tracker_names.get(tracker_id)
        if name is None:
            raise DecompilationError(
                f"Tracker ID {tracker_id} has no name",
                details={"tracker_id": tracker_id, "known": sorted(self.tracker_names)},
            )
        return name

    def _literal(self, value: int, position: int) -> str:
        entry = self.raw_by_position.get(position) or self.raw_by_surrogate.get(value)
        if entry is None:
            return str(value)
        if entry.kind == RawDataKind.BYTES:
            return entry.text
        return format_text_literal(entry.text, self.reserved)


def _wrap(fragment: _Fragment, needed: bool) -> str:
    return f"( {fragment.text} )" if needed else fragment.text


def format_text_literal(text: str, reserved: Iterable[str] = ()) -> str:
    """
    Render literal text so that re-parsing yields the same literal.

    Runs of plain words are emitted bare; anything that would tokenize
    differently (keywords, numbers, reference names, punctuation) is quoted.
    """
    reserved = set(reserved)
    words = text.split(" ")
    plain = bool(text) and all(
        _PLAIN_WORD_RE.match(word)
        and word not in KEYWORDS
        and word not in BOOLEAN_LITERALS
        and word not in reserved
        and not word.startswith("__FC_")
        for word in words
    )
    if plain:
        return text
    quote = "'" if '"' in text else '"'
    return f"{quote}{text}{quote}"


def resolve_placeholder_names(
    placeholders: Iterable[Placeholder],
    arguments: Iterable[ArgumentBinding] = (),
    foreign_calls: Iterable[NameBinding] = (),
    trackers: Iterable[NameBinding] = (),
) -> list[str]:
    """
    Render each placeholder as the reference syntax that produced it.

    Returns:
        ``FC:name``, ``TR:name``, ``GV:NAME`` or the argument name, by index

    Raises:
        DecompilationError: If a placeholder's source is missing from its table
    """
    arguments_by_index = {argument.positional_index: argument.name for argument in arguments}
    foreign_calls_by_id = {entry.id: entry.name for entry in foreign_calls}
    trackers_by_id = {entry.id: entry.name for entry in trackers}

    names = []
    for index, placeholder in enumerate(placeholders):
        if placeholder.global_variable is not None:
            names.append(f"{GLOBAL_VARIABLE_PREFIX}{placeholder.global_variable.value}")
            continue
        if placeholder.is_foreign_call_value:
            table, prefix, label = foreign_calls_by_id, FOREIGN_CALL_PREFIX, "foreign call"
        elif placeholder.is_tracker_value:
            table, prefix, label = trackers_by_id, TRACKER_PREFIX, "tracker"
        else:
            table, prefix, label = arguments_by_index, "", "argument"
        name = table.get(placeholder.reference_index)
        if name is None:
            raise DecompilationError(
                f"Placeholder {index} refers to unknown {label} {placeholder.reference_index}",
                details={"index": index, "reference_index": placeholder.reference_index},
            )
        names.append(f"{prefix}{name}")
    return names


def decompile_effect(
    effect: EffectRecord,
    placeholder_names: Sequence[str] = (),
    tracker_names: Mapping[int, str] | None = None,
    reserved_names: Iterable[str] = (),
) -> str:
    """
    Render one effect record as effect syntax.

    Example:
        >>> decompile_effect(RevertEffect(message="Not allowed"))
        "revert('Not allowed')"
    """
    if isinstance(effect, RevertEffect):
        if not effect.message:
            return "revert"
        quote = '"' if "'" in effect.message else "'"
        return f"revert({quote}{effect.message}{quote})"
    if isinstance(effect, EventEffect):
        if effect.param_value is None:
            return f"emit {effect.tag}"
        return f"emit {effect.tag}, {effect.param_value}"
    return decompile_instruction_set(
        effect.instruction_set, placeholder_names, effect.raw_data, tracker_names, reserved_names
    )
