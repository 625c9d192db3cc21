"""
Reference resolution for rule syntax.

Named references in an expression are bound to the source that supplies
their runtime value:

- ``FC:name(args)``  foreign call result (by foreign call ID)
- ``TR:name``        tracker value (by tracker ID)
- ``TRU:name``       tracker update target, legal only in effects
- ``GV:NAME``        transaction/block global (``GV:MSG_SENDER`` ...)
- bare identifier    calling-function argument (by positional index)

Foreign call invocations are rewritten to one synthetic token per call
name before tokenizing, so their argument lists never reach the parser.
Quoted literals are skipped: text inside quotes is never a reference.
"""

import logging
import re
from collections.abc import Iterable

from rules_sdk.core.config import settings
from rules_sdk.core.errors import UnresolvedReferenceError
from rules_sdk.domain.enums import (
    GLOBAL_VARIABLE_ALIASES,
    GlobalVariable,
    ReferenceKind,
    ValueType,
)
from rules_sdk.domain.models import ArgumentBinding, NameBinding, ReferenceBinding

logger = logging.getLogger(__name__)

FOREIGN_CALL_PREFIX = "FC:"
TRACKER_PREFIX = "TR:"
TRACKER_UPDATE_PREFIX = "TRU:"
GLOBAL_VARIABLE_PREFIX = "GV:"

_NAME = r"[A-Za-z_][A-Za-z0-9_]*"
_QUOTED = r"(?P<quoted>\"[^\"]*\"|'[^']*')"
_FOREIGN_CALL_RE = re.compile(rf"{_QUOTED}|(?<![\w:])FC:(?P<name>{_NAME})(\([^)]*\))?")
_TRACKER_RE = re.compile(rf"{_QUOTED}|(?<![\w:])TRU?:(?P<name>{_NAME})")
_SYNTHETIC_RE = re.compile(rf"^__FC_({_NAME})__$")


def foreign_call_token(name: str) -> str:
    """Synthetic token standing in for every invocation of one foreign call."""
    return f"__FC_{name}__"


def _unique(names: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for name in names:
        seen.setdefault(name, None)
    return list(seen)


def _names(pattern: re.Pattern, text: str) -> Iterable[str]:
    return (match["name"] for match in pattern.finditer(text) if match["name"])


def _rewrite_foreign_call(match: re.Match) -> str:
    if match["quoted"] is not None:
        return match["quoted"]
    return foreign_call_token(match["name"])


def build_foreign_call_list(text: str) -> list[str]:
    """
    List the foreign call names referenced in rule text, first occurrence first.

    Example:
        >>> build_foreign_call_list("FC:price(to) > 5 AND FC:limit() < FC:price(to)")
        ['price', 'limit']
    """
    return _unique(_names(_FOREIGN_CALL_RE, text))


def build_tracker_list(text: str) -> list[str]:
    """List the tracker names referenced (read or updated) in rule text."""
    return _unique(_names(_TRACKER_RE, text))


class ReferenceResolver:
    """
    Binds reference tokens to foreign calls, trackers, globals and arguments.

    The name tables are read-only; one resolver can serve the condition and
    every effect of a rule.

    Args:
        arguments: Argument table of the calling function
        foreign_calls: Foreign call name table
        trackers: Tracker name table
        strict: Fail on names absent from their table. When False, unknown
                ``FC:``/``TR:``/``TRU:`` names bind to ID 0 (legacy behavior).
                Defaults to ``settings.strict_references``.
    """

    def __init__(
        self,
        arguments: Iterable[ArgumentBinding] = (),
        foreign_calls: Iterable[NameBinding] = (),
        trackers: Iterable[NameBinding] = (),
        *,
        strict: bool | None = None,
    ):
        self.arguments = {argument.name: argument for argument in arguments}
        self.foreign_calls = {entry.name: entry for entry in foreign_calls}
        self.trackers = {entry.name: entry for entry in trackers}
        self.strict = settings.strict_references if strict is None else strict

    def resolve(self, expression: str) -> str:
        """Replace each ``FC:name(args)`` outside quotes with its synthetic token."""
        return _FOREIGN_CALL_RE.sub(_rewrite_foreign_call, expression)

    def bind(self, token: str) -> ReferenceBinding | None:
        """
        Bind a single word token.

        Returns:
            The binding, or None when the token is not a reference (it is
            then literal text).

        Raises:
            UnresolvedReferenceError: If a prefixed name is unknown
        """
        synthetic = _SYNTHETIC_RE.match(token)
        if synthetic:
            return self._bind_foreign_call(synthetic.group(1))
        if token.startswith(FOREIGN_CALL_PREFIX):
            return self._bind_foreign_call(token[len(FOREIGN_CALL_PREFIX) :])
        if token.startswith(TRACKER_UPDATE_PREFIX):
            return self._bind_tracker(token[len(TRACKER_UPDATE_PREFIX) :], is_update=True)
        if token.startswith(TRACKER_PREFIX):
            return self._bind_tracker(token[len(TRACKER_PREFIX) :], is_update=False)
        if token.startswith(GLOBAL_VARIABLE_PREFIX):
            return self._bind_global(token[len(GLOBAL_VARIABLE_PREFIX) :])
        if token in GLOBAL_VARIABLE_ALIASES:
            return self._global_binding(GLOBAL_VARIABLE_ALIASES[token])
        argument = self.arguments.get(token)
        if argument is not None:
            return ReferenceBinding(
                kind=ReferenceKind.ARGUMENT,
                name=argument.name,
                index=argument.positional_index,
                value_type=argument.value_type,
            )
        return None

    def _bind_foreign_call(self, name: str) -> ReferenceBinding:
        entry = self.foreign_calls.get(name)
        if entry is None:
            entry = self._missing("foreign call", FOREIGN_CALL_PREFIX, name, self.foreign_calls)
        return ReferenceBinding(
            kind=ReferenceKind.FOREIGN_CALL,
            name=name,
            index=entry.id,
            value_type=entry.value_type,
        )

    def _bind_tracker(self, name: str, *, is_update: bool) -> ReferenceBinding:
        entry = self.trackers.get(name)
        if entry is None:
            prefix = TRACKER_UPDATE_PREFIX if is_update else TRACKER_PREFIX
            entry = self._missing("tracker", prefix, name, self.trackers)
        return ReferenceBinding(
            kind=ReferenceKind.TRACKER,
            name=name,
            index=entry.id,
            value_type=entry.value_type,
            is_update=is_update,
            mapped=entry.mapped,
        )

    def _bind_global(self, name: str) -> ReferenceBinding:
        try:
            global_variable = GlobalVariable(name)
        except ValueError:
            raise UnresolvedReferenceError(
                f"Unknown global variable '{GLOBAL_VARIABLE_PREFIX}{name}'",
                details={
                    "reference": f"{GLOBAL_VARIABLE_PREFIX}{name}",
                    "known": [gv.value for gv in GlobalVariable],
                },
            )
        return self._global_binding(global_variable)

    @staticmethod
    def _global_binding(global_variable: GlobalVariable) -> ReferenceBinding:
        return ReferenceBinding(
            kind=ReferenceKind.GLOBAL_VARIABLE,
            name=global_variable.value,
            index=0,
            value_type=global_variable.value_type,
            global_variable=global_variable,
        )

    def _missing(
        self, label: str, prefix: str, name: str, table: dict[str, NameBinding]
    ) -> NameBinding:
        if self.strict:
            raise UnresolvedReferenceError(
                f"Unknown {label} '{prefix}{name}'",
                details={"reference": f"{prefix}{name}", "known": sorted(table)},
            )
        logger.warning("Unresolved %s %s%s bound to ID 0", label, prefix, name)
        return NameBinding(name=name, id=0, value_type=ValueType.UINT256)
