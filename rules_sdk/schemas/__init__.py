"""
Pydantic schemas for authored rule JSON.

This package contains schema definitions for the JSON documents policy
authors write (rules, foreign calls, calling functions) and for the
name tables the policy layer supplies.
"""

# Re-export schemas for convenient imports.
from .rule import CallingFunctionJSON as CallingFunctionJSON
from .rule import ForeignCallJSON as ForeignCallJSON
from .rule import NameTableEntry as NameTableEntry
from .rule import RuleJSON as RuleJSON
