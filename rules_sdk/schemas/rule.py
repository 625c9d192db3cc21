from __future__ import annotations

from eth_utils import is_address
from pydantic import BaseModel, ConfigDict, Field, field_validator

from rules_sdk.domain.enums import ValueType
from rules_sdk.domain.models import NameBinding


class RuleJSON(BaseModel):
    """Authored rule: condition text, effect texts and the calling function."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    condition: str
    positiveEffects: list[str] = Field(default_factory=list)
    negativeEffects: list[str] = Field(default_factory=list)
    callingFunction: str = ""

    @field_validator("condition")
    @classmethod
    def validate_condition(cls, v: str) -> str:
        """Condition must be non-empty; surrounding whitespace is dropped."""
        v = v.strip()
        if not v:
            raise ValueError("condition cannot be empty")
        return v

    @field_validator("positiveEffects", "negativeEffects")
    @classmethod
    def validate_effects(cls, v: list[str]) -> list[str]:
        """Effects are trimmed; blank entries are rejected."""
        effects = [effect.strip() for effect in v]
        if any(not effect for effect in effects):
            raise ValueError("effects cannot contain empty strings")
        return effects


class ForeignCallJSON(BaseModel):
    """Authored foreign call definition."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    function: str = Field(..., min_length=3)
    address: str
    returnType: str
    valuesToPass: str = ""
    mappedTrackerKeyValues: str = ""

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        """Target must be a 20-byte hex address."""
        if not (v.startswith("0x") and is_address(v)):
            raise ValueError(f"address must be a 0x-prefixed 20-byte hex address, got '{v}'")
        return v

    @field_validator("function")
    @classmethod
    def validate_function(cls, v: str) -> str:
        v = v.strip()
        if "(" not in v or not v.endswith(")"):
            raise ValueError(f"function must look like 'name(type,...)', got '{v}'")
        return v


class CallingFunctionJSON(BaseModel):
    """Authored calling function: the contract entry point a policy guards."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    functionSignature: str
    encodedValues: str = ""


class NameTableEntry(BaseModel):
    """One row of a foreign call or tracker name table as supplied over JSON."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    id: int = Field(..., ge=0)
    type: ValueType = ValueType.UINT256
    mapped: bool = False

    def to_binding(self) -> NameBinding:
        return NameBinding(name=self.name, id=self.id, value_type=self.type, mapped=self.mapped)
