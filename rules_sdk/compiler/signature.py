"""
Calling-function signature parsing.

Builds the argument table a rule is compiled against from a parameter
list such as ``"address to, uint256 value"``.
"""

import logging

from rules_sdk.core.errors import UnsupportedTypeError, ValidationError
from rules_sdk.domain.enums import ValueType
from rules_sdk.domain.models import ArgumentBinding

logger = logging.getLogger(__name__)


def _split_parameters(signature: str) -> list[str]:
    if "(" in signature:
        if not signature.rstrip().endswith(")"):
            raise ValidationError(
                f"Signature '{signature}' is missing its closing ')'",
                details={"signature": signature},
            )
        signature = signature[signature.index("(") + 1 : signature.rindex(")")]
    return [part.strip() for part in signature.split(",") if part.strip()]


def build_argument_table(signature: str, *, strict: bool = True) -> list[ArgumentBinding]:
    """
    Parse a calling-function parameter list into positional argument bindings.

    Args:
        signature: Comma-separated ``"<type> <name>"`` pairs, optionally wrapped
                   in a declaration (``"transfer(address to)"``). May be empty.
        strict: When True an unknown type raises. When False the parameter is
                skipped but still counts toward the positional index, so
                later arguments keep their declared positions.

    Returns:
        Argument bindings in declaration order

    Raises:
        UnsupportedTypeError: If a type is not a known parameter type (strict)
        ValidationError: If a parameter lacks a type or a name

    Example:
        >>> build_argument_table("address to, uint256 value")
        [ArgumentBinding(name='to', positional_index=0, value_type=<ValueType.ADDRESS: 0>),
         ArgumentBinding(name='value', positional_index=1, value_type=<ValueType.UINT256: 2>)]
    """
    table: list[ArgumentBinding] = []
    for position, parameter in enumerate(_split_parameters(signature)):
        parts = parameter.split()
        if len(parts) != 2:
            raise ValidationError(
                f"Parameter '{parameter}' must be '<type> <name>'",
                details={"parameter": parameter, "position": position},
            )
        type_name, name = parts
        value_type = ValueType.from_type_name(type_name)
        if value_type is None:
            if strict:
                raise UnsupportedTypeError(
                    f"Unsupported type '{type_name}' for parameter '{name}'",
                    details={"type": type_name, "parameter": name, "position": position},
                )
            logger.warning("Skipping parameter %s with unsupported type %s", name, type_name)
            continue
        table.append(ArgumentBinding(name=name, positional_index=position, value_type=value_type))
    return table


def parse_calling_function(signature: str) -> list[str]:
    """
    Return the declared parameter names of a calling function.

    Accepts either a bare parameter list (``"address to, uint256 value"``) or
    a full declaration (``"transfer(address to, uint256 value)"``).
    """
    return [parameter.split()[-1] for parameter in _split_parameters(signature)]


def split_function_input(function: str) -> list[str]:
    """
    Return the parameter type tokens of a function signature.

    Example:
        >>> split_function_input("transfer(address, uint256)")
        ['address', 'uint256']
    """
    if "(" not in function or not function.rstrip().endswith(")"):
        raise ValidationError(
            f"Function signature '{function}' must look like 'name(type,...)'",
            details={"function": function},
        )
    inner = function[function.index("(") + 1 : function.rindex(")")]
    return [part.split()[0] for part in _split_parameters(inner)]
