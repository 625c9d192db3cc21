"""
Pytest configuration and shared fixtures for compiler tests.

Provides:
- Calling-function argument table used across the suite
- Foreign call and tracker name tables (scalar and mapped trackers)
- A strict ReferenceResolver over those tables
- AnyIO backend selection for the async test style
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

# Add project root to path for imports
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402 (import after path setup)

from rules_sdk.compiler.references import ReferenceResolver  # noqa: E402
from rules_sdk.compiler.signature import build_argument_table  # noqa: E402
from rules_sdk.domain.enums import ValueType  # noqa: E402
from rules_sdk.domain.models import ArgumentBinding, NameBinding  # noqa: E402

CALLING_FUNCTION_ARGUMENTS = "address to, uint256 value, string info"


# =============================================================================
# AnyIO Backend Configuration
# =============================================================================
@pytest.fixture
def anyio_backend():
    return "asyncio"


# =============================================================================
# Name tables
# =============================================================================


@pytest.fixture
def arguments() -> list[ArgumentBinding]:
    return build_argument_table(CALLING_FUNCTION_ARGUMENTS)


@pytest.fixture
def foreign_calls() -> list[NameBinding]:
    return [
        NameBinding(name="getPrice", id=3, value_type=ValueType.UINT256),
        NameBinding(name="isAllowed", id=4, value_type=ValueType.BOOL),
    ]


@pytest.fixture
def trackers() -> list[NameBinding]:
    return [
        NameBinding(name="balance", id=1, value_type=ValueType.UINT256),
        NameBinding(name="limits", id=2, value_type=ValueType.UINT256, mapped=True),
        NameBinding(name="testOne", id=5, value_type=ValueType.UINT256),
        NameBinding(name="testTwo", id=6, value_type=ValueType.UINT256, mapped=True),
    ]


@pytest.fixture
def tracker_names(trackers: list[NameBinding]) -> dict[int, str]:
    return {entry.id: entry.name for entry in trackers}


@pytest.fixture
def resolver(
    arguments: list[ArgumentBinding],
    foreign_calls: list[NameBinding],
    trackers: list[NameBinding],
) -> ReferenceResolver:
    return ReferenceResolver(arguments, foreign_calls, trackers, strict=True)
