"""
Rule compiler for the rules engine SDK.

Compiles an authored rule (condition plus positive/negative effects) into
the instruction sets, placeholder tables and raw-data tables the engine
stores, and decompiles stored rules back into authoring JSON.

This is the CORE VALUE of the SDK:
- Transforms rule syntax into engine-executable instruction streams
- Ensures determinism (same input = identical output, same rule hash)
- Resolves every reference before anything is emitted
- Round-trips: decompiled syntax compiles back to the same instructions
"""

import logging
import time
from collections.abc import Iterable
from typing import Any

import pydantic
from eth_abi.exceptions import DecodingError as AbiDecodingError
from eth_utils import keccak

from rules_sdk.compiler.canonicalizer import to_canonical_json_string
from rules_sdk.compiler.decompiler import (
    decompile_effect,
    decompile_instruction_set,
    resolve_placeholder_names,
)
from rules_sdk.compiler.effects import compile_effect
from rules_sdk.compiler.encoding import decode_event_param, decode_text, hex_to_bytes
from rules_sdk.compiler.instructions import PlaceholderTable, compile_expression
from rules_sdk.compiler.references import ReferenceResolver
from rules_sdk.compiler.signature import build_argument_table
from rules_sdk.core.config import settings
from rules_sdk.core.errors import DecompilationError, ValidationError
from rules_sdk.domain.enums import EffectType, RawDataKind, ValueType
from rules_sdk.domain.models import (
    ArgumentBinding,
    EffectRecord,
    EventEffect,
    ExpressionEffect,
    NameBinding,
    Placeholder,
    RawDataEntry,
    RevertEffect,
    RuleCompilationResult,
)
from rules_sdk.schemas.rule import CallingFunctionJSON, NameTableEntry, RuleJSON

logger = logging.getLogger(__name__)


def compile_rule(
    rule: RuleJSON | dict[str, Any],
    arguments: str | CallingFunctionJSON | Iterable[ArgumentBinding],
    foreign_calls: Iterable[NameBinding | dict[str, Any]] = (),
    trackers: Iterable[NameBinding | dict[str, Any]] = (),
    *,
    strict: bool | None = None,
    strict_types: bool | None = None,
) -> RuleCompilationResult:
    """
    Compile an authored rule into its on-chain representation.

    This is the main entry point for rule compilation. It:
    1. Validates the rule JSON
    2. Builds the argument table from the calling function signature
    3. Compiles the condition with its own placeholder table
    4. Compiles positive then negative effects with one shared table

    Args:
        rule: Authored rule (``RuleJSON`` or its dict form)
        arguments: Calling-function parameter list (``"address to, uint256 value"``),
                   a CallingFunctionJSON, or a prebuilt argument table
        foreign_calls: Foreign call name table of the policy (bindings or
                       ``{"name", "id", "type", "mapped"}`` dicts)
        trackers: Tracker name table of the policy, in the same forms
        strict: Fail on unknown references (default ``settings.strict_references``)
        strict_types: Fail on unknown argument types (default ``settings.strict_types``)

    Returns:
        RuleCompilationResult ready for submission

    Raises:
        ValidationError: If the rule JSON or a name table is structurally invalid
        UnsupportedTypeError: If an argument type is unknown (strict)
        MalformedExpressionError: If the condition or an effect cannot be parsed
        UnresolvedReferenceError: If a referenced name is unknown (strict)

    Example:
        >>> result = compile_rule(
        ...     {"condition": "value > 5", "positiveEffects": ["revert"]},
        ...     "uint256 value",
        ... )
        >>> result.condition_instruction_set
        [2, 0, 0, 5, 10, 0, 1]
    """
    start_time = time.time()
    rule = _validate_rule(rule)

    strict_types = settings.strict_types if strict_types is None else strict_types
    arguments = _argument_table(arguments, strict=strict_types)
    resolver = ReferenceResolver(
        arguments, _name_table(foreign_calls), _name_table(trackers), strict=strict
    )

    condition = compile_expression(rule.condition, resolver, PlaceholderTable())

    effect_placeholders = PlaceholderTable()
    positive_effects = [
        compile_effect(effect, resolver, effect_placeholders) for effect in rule.positiveEffects
    ]
    negative_effects = [
        compile_effect(effect, resolver, effect_placeholders) for effect in rule.negativeEffects
    ]

    logger.debug(
        "Compiled rule: %d condition words, %d placeholders, %d effects, duration=%.4fs",
        len(condition.instruction_set),
        len(condition.placeholders),
        len(positive_effects) + len(negative_effects),
        time.time() - start_time,
    )

    return RuleCompilationResult(
        condition_instruction_set=condition.instruction_set,
        condition_raw_data=condition.raw_data,
        condition_placeholders=condition.placeholders,
        effect_placeholders=list(effect_placeholders.entries),
        positive_effects=positive_effects,
        negative_effects=negative_effects,
    )


def decompile_rule(
    result: RuleCompilationResult | dict[str, Any],
    arguments: str | CallingFunctionJSON | Iterable[ArgumentBinding],
    foreign_calls: Iterable[NameBinding | dict[str, Any]] = (),
    trackers: Iterable[NameBinding | dict[str, Any]] = (),
    *,
    calling_function: str = "",
) -> RuleJSON:
    """
    Reconstruct authoring JSON from a stored rule.

    Args:
        result: Compiled rule, or its wire dict as read back from the engine
        arguments: Calling-function parameter list or argument table
        foreign_calls: Foreign call name table
        trackers: Tracker name table
        calling_function: Value for the ``callingFunction`` field

    Returns:
        RuleJSON whose condition and effects compile back to ``result``

    Raises:
        DecompilationError: If an instruction set or table is inconsistent
    """
    if isinstance(result, dict):
        result = result_from_dict(result)
    arguments = _argument_table(arguments, strict=False)
    foreign_calls = _name_table(foreign_calls)
    trackers = _name_table(trackers)
    tracker_names = {entry.id: entry.name for entry in trackers}
    argument_names = [argument.name for argument in arguments]

    condition_names = resolve_placeholder_names(
        result.condition_placeholders, arguments, foreign_calls, trackers
    )
    effect_names = resolve_placeholder_names(
        result.effect_placeholders, arguments, foreign_calls, trackers
    )

    condition = decompile_instruction_set(
        result.condition_instruction_set,
        condition_names,
        result.condition_raw_data,
        tracker_names,
        argument_names,
    )
    if not condition:
        raise DecompilationError("Stored rule has an empty condition instruction set")
    logger.debug("Decompiled rule condition: %s", condition)

    return RuleJSON(
        condition=condition,
        positiveEffects=[
            decompile_effect(effect, effect_names, tracker_names, argument_names)
            for effect in result.positive_effects
        ],
        negativeEffects=[
            decompile_effect(effect, effect_names, tracker_names, argument_names)
            for effect in result.negative_effects
        ],
        callingFunction=calling_function,
    )


def rule_hash(result: RuleCompilationResult) -> str:
    """
    Content hash of a compiled rule.

    keccak256 of the canonical JSON of the wire form. Identical inputs give
    identical hashes, so callers can detect real changes before submitting.
    """
    canonical = to_canonical_json_string(result.to_dict())
    return "0x" + keccak(text=canonical).hex()


def _validate_rule(rule: RuleJSON | dict[str, Any]) -> RuleJSON:
    if isinstance(rule, RuleJSON):
        return rule
    try:
        return RuleJSON.model_validate(rule)
    except pydantic.ValidationError as e:
        raise ValidationError(
            "Invalid rule JSON",
            details={"errors": e.errors(include_url=False)},
        ) from e


def _argument_table(
    arguments: str | CallingFunctionJSON | Iterable[ArgumentBinding], *, strict: bool
) -> list[ArgumentBinding]:
    if isinstance(arguments, CallingFunctionJSON):
        arguments = arguments.functionSignature
    if isinstance(arguments, str):
        return build_argument_table(arguments, strict=strict)
    return list(arguments)


def _name_table(entries: Iterable[NameBinding | dict[str, Any]]) -> list[NameBinding]:
    table = []
    for entry in entries:
        if isinstance(entry, NameBinding):
            table.append(entry)
            continue
        try:
            table.append(NameTableEntry.model_validate(entry).to_binding())
        except pydantic.ValidationError as e:
            raise ValidationError(
                "Invalid name table entry",
                details={"entry": entry, "errors": e.errors(include_url=False)},
            ) from e
    return table


# =============================================================================
# Wire form readers
# =============================================================================


def raw_data_from_dict(data: dict[str, Any] | None) -> list[RawDataEntry]:
    """Rebuild raw-data entries from the columnar wire form."""
    if not data:
        return []
    positions = data.get("instructionSetIndex", [])
    kinds = data.get("argumentTypes", [])
    values = data.get("dataValues", [])
    if not len(positions) == len(kinds) == len(values):
        raise DecompilationError(
            "Raw data columns have different lengths",
            details={"positions": len(positions), "kinds": len(kinds), "values": len(values)},
        )
    entries = []
    for position, kind, value in zip(positions, kinds, values):
        kind = RawDataKind(int(kind))
        encoded = hex_to_bytes(value) if isinstance(value, str) else bytes(value)
        entries.append(
            RawDataEntry(
                text=decode_text(encoded, kind),
                position=int(position),
                kind=kind,
                encoded=encoded,
            )
        )
    return entries


def effect_from_dict(data: dict[str, Any]) -> EffectRecord:
    effect_type = EffectType(int(data["effectType"]))
    if effect_type == EffectType.REVERT:
        return RevertEffect(message=data.get("errorMessage", ""))
    if effect_type == EffectType.EVENT:
        param_type = ValueType(int(data.get("pType", ValueType.VOID)))
        encoded = hex_to_bytes(data.get("param", "0x"))
        return EventEffect(
            tag=data.get("text", ""),
            param_type=param_type,
            param_value=decode_event_param(param_type, encoded),
            encoded_param=encoded,
        )
    return ExpressionEffect(
        instruction_set=[int(word) for word in data.get("instructionSet", [])],
        raw_data=raw_data_from_dict(data.get("rawData")),
    )


def result_from_dict(data: dict[str, Any]) -> RuleCompilationResult:
    """Inverse of ``RuleCompilationResult.to_dict``."""
    try:
        return RuleCompilationResult(
            condition_instruction_set=[int(word) for word in data["instructionSet"]],
            condition_raw_data=raw_data_from_dict(data.get("rawData")),
            condition_placeholders=[
                Placeholder.from_dict(entry) for entry in data.get("placeHolders", [])
            ],
            effect_placeholders=[
                Placeholder.from_dict(entry) for entry in data.get("effectPlaceHolders", [])
            ],
            positive_effects=[effect_from_dict(entry) for entry in data.get("posEffects", [])],
            negative_effects=[effect_from_dict(entry) for entry in data.get("negEffects", [])],
        )
    except (AbiDecodingError, KeyError, ValueError, TypeError) as e:
        raise DecompilationError(
            f"Stored rule is malformed: {e}", details={"error": type(e).__name__}
        ) from e
