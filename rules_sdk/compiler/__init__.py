"""
Rule-expression compiler for the rules engine SDK.

This package turns rule syntax into the instruction sets the on-chain
rules engine evaluates, and turns stored instruction sets back into syntax.

Key Components:
- signature: Calling-function argument tables
- references: Binds FC:/TR:/TRU:/GV: references and argument names
- tokenizer / tree: Precedence parser producing an expression tree
- instructions: Post-order instruction emission, placeholders, raw data
- effects: revert / emit / expression effect classification
- decompiler: Instruction set back to functionally equivalent syntax
- definitions: Foreign call definition resolution
- compiler: Whole-rule compile/decompile and rule hashing
- canonicalizer: Deterministic JSON for hashing

Design Principles:
- Determinism: Same input produces identical instructions and hash
- Fail closed: Unknown references and types abort compilation
- Round trip: Decompiled syntax compiles back to the same stream
"""

from rules_sdk.compiler.canonicalizer import canonicalize_json
from rules_sdk.compiler.compiler import compile_rule, decompile_rule, rule_hash
from rules_sdk.compiler.decompiler import decompile_instruction_set, resolve_placeholder_names
from rules_sdk.compiler.definitions import (
    foreign_call_definition_to_json,
    parse_foreign_call_definition,
)
from rules_sdk.compiler.effects import compile_effect
from rules_sdk.compiler.instructions import PlaceholderTable, compile_expression
from rules_sdk.compiler.references import (
    ReferenceResolver,
    build_foreign_call_list,
    build_tracker_list,
)
from rules_sdk.compiler.signature import build_argument_table, parse_calling_function
from rules_sdk.compiler.tree import build_expression_tree

__all__ = [
    "compile_rule",
    "decompile_rule",
    "rule_hash",
    "build_argument_table",
    "parse_calling_function",
    "ReferenceResolver",
    "build_foreign_call_list",
    "build_tracker_list",
    "build_expression_tree",
    "PlaceholderTable",
    "compile_expression",
    "compile_effect",
    "decompile_instruction_set",
    "resolve_placeholder_names",
    "parse_foreign_call_definition",
    "foreign_call_definition_to_json",
    "canonicalize_json",
]
