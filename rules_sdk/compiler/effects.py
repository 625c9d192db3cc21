"""
Effect compilation.

An effect string is one of:

- ``revert`` / ``revert("message")``  abort the calling transaction
- ``emit Tag[, param]``               emit an event, optionally with a parameter
- anything else                       an expression (usually tracker updates)

Expression effects of a rule share one placeholder table.
"""

from rules_sdk.compiler.encoding import encode_event_param
from rules_sdk.compiler.instructions import PlaceholderTable, compile_expression
from rules_sdk.compiler.references import ReferenceResolver
from rules_sdk.core.errors import MalformedExpressionError
from rules_sdk.domain.enums import ValueType
from rules_sdk.domain.models import EffectRecord, EventEffect, ExpressionEffect, RevertEffect

REVERT_KEYWORD = "revert"
EMIT_KEYWORD = "emit"


def compile_effect(
    effect: str,
    resolver: ReferenceResolver,
    placeholders: PlaceholderTable,
    *,
    max_length: int | None = None,
    max_depth: int | None = None,
) -> EffectRecord:
    """
    Classify and compile one effect string.

    Args:
        effect: Effect text from the rule's positive or negative effects
        resolver: Reference resolver for the rule
        placeholders: The rule's shared effect placeholder table (extended in place)

    Returns:
        RevertEffect, EventEffect or ExpressionEffect

    Raises:
        MalformedExpressionError: If an event has no tag or an expression
                                  effect cannot be parsed

    Example:
        >>> compile_effect("revert('Not allowed')", resolver, PlaceholderTable())
        RevertEffect(message='Not allowed')
    """
    text = effect.strip()

    if _starts_with_keyword(text, REVERT_KEYWORD):
        return RevertEffect(message=parse_revert_message(text))

    if _starts_with_keyword(text, EMIT_KEYWORD):
        return _compile_event(text)

    compiled = compile_expression(
        text,
        resolver,
        placeholders,
        allow_updates=True,
        max_length=max_length,
        max_depth=max_depth,
    )
    return ExpressionEffect(instruction_set=compiled.instruction_set, raw_data=compiled.raw_data)


def parse_revert_message(text: str) -> str:
    """
    Extract the message of a revert effect.

    One layer of matching quotes around the message is removed; a bare
    ``revert`` has an empty message.
    """
    remainder = text[len(REVERT_KEYWORD) :].strip()
    if not remainder:
        return ""
    if remainder.startswith("(") and remainder.endswith(")"):
        remainder = remainder[1:-1].strip()
    if len(remainder) >= 2 and remainder[0] == remainder[-1] and remainder[0] in "\"'":
        remainder = remainder[1:-1]
    return remainder


def _compile_event(text: str) -> EventEffect:
    body = text[len(EMIT_KEYWORD) :].strip()
    tag, _, param = body.partition(",")
    tag = tag.strip()
    param = param.strip()
    if not tag:
        raise MalformedExpressionError(
            "Event effect requires a tag: 'emit <Tag>[, <param>]'",
            details={"effect": text},
        )
    if not param:
        return EventEffect(tag=tag, param_type=ValueType.VOID)
    param_type, value, encoded = encode_event_param(param)
    return EventEffect(tag=tag, param_type=param_type, param_value=value, encoded_param=encoded)


def _starts_with_keyword(text: str, keyword: str) -> bool:
    if not text.startswith(keyword):
        return False
    rest = text[len(keyword) :]
    return not rest or rest[0].isspace() or rest[0] == "("
