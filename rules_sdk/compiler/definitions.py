"""
Foreign call definition resolution.

Turns an authored foreign call (target function plus the names of the
values to pass to it) into the index-encoded form the engine stores.
"""

import logging
from collections.abc import Iterable

from rules_sdk.compiler.encoding import function_selector
from rules_sdk.compiler.references import FOREIGN_CALL_PREFIX, TRACKER_PREFIX
from rules_sdk.compiler.signature import split_function_input
from rules_sdk.core.errors import UnresolvedReferenceError, UnsupportedTypeError
from rules_sdk.domain.enums import VALUE_TYPE_NAMES, EncodedIndexType, ValueType
from rules_sdk.domain.models import EncodedIndex, ForeignCallDefinition, NameBinding
from rules_sdk.schemas.rule import ForeignCallJSON

logger = logging.getLogger(__name__)


def parse_foreign_call_definition(
    definition: ForeignCallJSON,
    foreign_calls: Iterable[NameBinding],
    trackers: Iterable[NameBinding],
    function_arguments: list[str],
) -> ForeignCallDefinition:
    """
    Resolve a foreign call definition against the policy's name tables.

    Each entry of ``valuesToPass`` and ``mappedTrackerKeyValues`` becomes an
    encoded index: a calling-function argument (by position), another
    foreign call's result, a tracker, or a mapped tracker (by ID).

    Args:
        definition: Authored foreign call
        foreign_calls: Existing foreign calls (name to ID)
        trackers: Existing trackers (name to ID, mapped flag)
        function_arguments: Calling-function parameter names in order
                            (see ``parse_calling_function``)

    Returns:
        Index-encoded foreign call definition

    Raises:
        UnresolvedReferenceError: If a passed value names nothing known
        UnsupportedTypeError: If the return or a parameter type is unknown

    Example:
        >>> parse_foreign_call_definition(
        ...     ForeignCallJSON(
        ...         name="isAllowed",
        ...         function="isAllowed(address)",
        ...         address="0x0000000000000000000000000000000000000001",
        ...         returnType="bool",
        ...         valuesToPass="to",
        ...     ),
        ...     [], [], ["to", "value"],
        ... ).encoded_indices
        [EncodedIndex(index_type=<EncodedIndexType.ARGUMENT: 0>, index=0)]
    """
    foreign_calls_by_name = {entry.name: entry for entry in foreign_calls}
    trackers_by_name = {entry.name: entry for entry in trackers}
    arguments = [argument.strip() for argument in function_arguments]

    def resolve(value: str) -> EncodedIndex:
        value = value.strip()
        if value.startswith(FOREIGN_CALL_PREFIX):
            entry = foreign_calls_by_name.get(value[len(FOREIGN_CALL_PREFIX) :])
            if entry is not None:
                return EncodedIndex(EncodedIndexType.FOREIGN_CALL, entry.id)
        elif value.startswith(TRACKER_PREFIX):
            entry = trackers_by_name.get(value[len(TRACKER_PREFIX) :])
            if entry is not None:
                index_type = (
                    EncodedIndexType.MAPPED_TRACKER if entry.mapped else EncodedIndexType.TRACKER
                )
                return EncodedIndex(index_type, entry.id)
        elif value in arguments:
            return EncodedIndex(EncodedIndexType.ARGUMENT, arguments.index(value))
        raise UnresolvedReferenceError(
            f"Foreign call '{definition.name}' passes unknown value '{value}'",
            details={"foreign_call": definition.name, "value": value},
        )

    encoded_indices = [resolve(value) for value in _split_values(definition.valuesToPass)]
    mapped_tracker_key_indices = [
        resolve(value) for value in _split_values(definition.mappedTrackerKeyValues)
    ]

    return_type = ValueType.from_type_name(definition.returnType)
    if return_type is None:
        raise UnsupportedTypeError(
            f"Unsupported return type '{definition.returnType}' for foreign call "
            f"'{definition.name}'",
            details={"foreign_call": definition.name, "type": definition.returnType},
        )

    parameter_types = []
    for type_name in split_function_input(definition.function):
        parameter_type = ValueType.from_type_name(type_name)
        if parameter_type is None:
            raise UnsupportedTypeError(
                f"Unsupported parameter type '{type_name}' in '{definition.function}'",
                details={"foreign_call": definition.name, "type": type_name},
            )
        parameter_types.append(parameter_type)

    logger.debug(
        "Resolved foreign call %s with %d encoded values",
        definition.name,
        len(encoded_indices),
    )
    return ForeignCallDefinition(
        name=definition.name,
        address=definition.address,
        function=definition.function,
        selector=function_selector(definition.function),
        return_type=return_type,
        parameter_types=parameter_types,
        encoded_indices=encoded_indices,
        mapped_tracker_key_indices=mapped_tracker_key_indices,
    )


def foreign_call_definition_to_json(
    definition: ForeignCallDefinition,
    foreign_calls: Iterable[NameBinding],
    trackers: Iterable[NameBinding],
    function_arguments: list[str],
) -> ForeignCallJSON:
    """
    Render an index-encoded foreign call back into its authored form.

    Inverse of ``parse_foreign_call_definition``: encoded indices become the
    argument, ``FC:`` and ``TR:`` names they point at.

    Raises:
        UnresolvedReferenceError: If an index points at nothing in the tables
    """
    foreign_calls_by_id = {entry.id: entry.name for entry in foreign_calls}
    trackers_by_id = {entry.id: entry.name for entry in trackers}

    def name_of(encoded: EncodedIndex) -> str:
        if encoded.index_type == EncodedIndexType.ARGUMENT:
            if 0 <= encoded.index < len(function_arguments):
                return function_arguments[encoded.index].strip()
        elif encoded.index_type == EncodedIndexType.FOREIGN_CALL:
            if encoded.index in foreign_calls_by_id:
                return FOREIGN_CALL_PREFIX + foreign_calls_by_id[encoded.index]
        elif encoded.index in trackers_by_id:
            return TRACKER_PREFIX + trackers_by_id[encoded.index]
        raise UnresolvedReferenceError(
            f"Foreign call '{definition.name}' passes unknown "
            f"{encoded.index_type.name.lower()} {encoded.index}",
            details={"foreign_call": definition.name, **encoded.to_dict()},
        )

    return ForeignCallJSON(
        name=definition.name,
        function=definition.function,
        address=definition.address,
        returnType=VALUE_TYPE_NAMES[definition.return_type],
        valuesToPass=", ".join(name_of(index) for index in definition.encoded_indices),
        mappedTrackerKeyValues=", ".join(
            name_of(index) for index in definition.mapped_tracker_key_indices
        ),
    )

def _split_values(values: str) -> list[str]:
    return [value for value in (part.strip() for part in values.split(",")) if value]
