# backend/app/schemas/base.py
"""
Shared schema bases for the practice space API.

Responses read straight off ORM rows; requests reject unknown fields so a
typo in a client payload fails loudly instead of being ignored.
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic_core import core_schema

CENT = Decimal("0.01")


class StandardizedModel(BaseModel):
    """Response base: built from attributes, enums rendered as their values."""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True, from_attributes=True)


class StrictRequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, validate_assignment=True)


class Money(Decimal):
    """Dollar amounts and hour counts, kept as Decimal, rounded to cents, emitted as JSON numbers."""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        def to_cents(value: Any) -> Decimal:
            if isinstance(value, bool):
                raise ValueError("Booleans are not amounts")
            try:
                amount = Decimal(str(value)) if not isinstance(value, Decimal) else value
            except ArithmeticError as exc:
                raise ValueError(f"Cannot convert {value!r} to an amount") from exc
            return amount.quantize(CENT, rounding=ROUND_HALF_UP)

        return core_schema.no_info_after_validator_function(
            to_cents,
            core_schema.union_schema(
                [
                    core_schema.int_schema(),
                    core_schema.float_schema(),
                    core_schema.str_schema(),
                    core_schema.is_instance_schema(Decimal),
                ]
            ),
            serialization=core_schema.plain_serializer_function_ser_schema(
                float, info_arg=False, return_schema=core_schema.float_schema()
            ),
        )
