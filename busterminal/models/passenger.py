"""
Passenger Pydantic model for the bus terminal application.
"""

import logging
import warnings
from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from ..exceptions import DataQualityWarning
from .enums import BenefitType

logger = logging.getLogger(__name__)


class PassengerModel(BaseModel):
    """
    Passenger identified by the (document_type, document_number) pair.

    A missing or unrecognized benefit type falls back to NONE. The fallback
    is reported through a DataQualityWarning so callers can detect bad rows.
    """
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    full_name: str = Field(..., max_length=255, description="Full name")
    document_type: str = Field(..., max_length=50, description="Identity document type")
    document_number: str = Field(..., max_length=50, description="Identity document number")
    phone_number: str = Field(..., max_length=30, description="Contact phone")
    email: Optional[str] = Field(None, max_length=255, description="Contact email")
    benefit_type: BenefitType = Field(default=BenefitType.NONE, description="Discount category")

    @field_validator("full_name", "document_type", "document_number")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("benefit_type", mode="before")
    @classmethod
    def fallback_benefit_type(cls, v: Any) -> Any:
        if isinstance(v, BenefitType):
            return v
        try:
            return BenefitType(v)
        except ValueError:
            message = f"Unrecognized benefit type {v!r}, falling back to {BenefitType.NONE.value}"
            logger.warning(message)
            warnings.warn(message, DataQualityWarning, stacklevel=2)
            return BenefitType.NONE
