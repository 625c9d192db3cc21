"""
Domain-specific exceptions for the rules engine SDK.

These exceptions represent authoring and decoding failures and are mapped
to stable error kinds for the caller's hard-failure surface. Compilation
never retries; the first violation aborts the call.
"""

from typing import Any


class RulesEngineError(Exception):
    """Base exception for all rules engine SDK errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Render the error in the caller-facing ``{errorType, message, state}`` shape."""
        return {
            "errorType": get_error_kind(self),
            "message": self.message,
            "state": self.details,
        }


class ValidationError(RulesEngineError):
    """
    Raised when authoring input fails structural validation.

    Examples:
    - Rule JSON missing its condition
    - Expression longer than the configured limit
    - Foreign call definition without a function signature
    """

    pass


class UnsupportedTypeError(RulesEngineError):
    """
    Raised when a declared type name is not a known parameter type.

    Examples:
    - ``"uint8 amount"`` in a calling function signature
    - Foreign call return type ``"int256"``
    """

    pass


class MalformedExpressionError(RulesEngineError):
    """
    Raised when rule syntax cannot be parsed into an expression tree.

    Examples:
    - Unbalanced parentheses
    - Dangling operator (``"1 +"``)
    - Tracker update (``TRU:``) used inside a condition
    - Numeric literal larger than 2**256 - 1
    """

    pass


class UnresolvedReferenceError(RulesEngineError):
    """
    Raised when a prefixed reference names nothing in its table.

    Examples:
    - ``FC:getPrice`` with no foreign call named ``getPrice``
    - ``TR:balance`` with no tracker named ``balance``
    - ``GV:BLOCK_HASH`` (unknown global variable)
    """

    pass


class DecompilationError(RulesEngineError):
    """
    Raised when a stored instruction set cannot be turned back into syntax.

    Examples:
    - Unknown opcode in the stream
    - Truncated instruction (missing operand words)
    - Operand referring to a memory slot not yet written
    - Placeholder index with no matching name
    """

    pass


ERROR_KIND_MAP = {
    ValidationError: "VALIDATION",
    UnsupportedTypeError: "UNSUPPORTED_TYPE",
    MalformedExpressionError: "MALFORMED_EXPRESSION",
    UnresolvedReferenceError: "UNRESOLVED_REFERENCE",
    DecompilationError: "DECOMPILATION",
}


def get_error_kind(error: Exception) -> str:
    """
    Get the stable error kind for a given exception.

    Args:
        error: The exception instance

    Returns:
        Error kind name (defaults to "INTERNAL" for unknown errors)
    """
    return ERROR_KIND_MAP.get(type(error), "INTERNAL")
