"""Pydantic schemas shared across the API."""
from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OnboardingStatus(str, Enum):
    DRAFT = "Draft"
    SUBMITTED = "Submitted"


class OnboardingType(str, Enum):
    DILLYS = "DILLYS"
    BNUTTY = "BNUTTY"


class _RowFields(BaseModel):
    model_config = ConfigDict(extra="forbid")

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


class ProductFields(_RowFields):
    name: str = Field(..., min_length=1)
    formula_source: Literal["existing", "customer"] = "existing"
    specifications: Optional[str] = None
    trial_date: Optional[date] = None

    @field_validator("formula_source", mode="before")
    @classmethod
    def default_formula_source(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "existing"
        return value


class PackagingFields(_RowFields):
    type: str = Field(..., min_length=1)
    size: Optional[str] = None
    case_pack_qty: Optional[int] = Field(default=None, ge=0)
    label_orientation: Optional[str] = None
    artwork_required: bool = False
    provided_by_customer: bool = False
    notes: Optional[str] = None


class IngredientFields(_RowFields):
    name: str = Field(..., min_length=1)
    vendor_name: Optional[str] = None
    provided_by_customer: bool = False


class DocumentFields(_RowFields):
    document_type: str = Field(..., min_length=1)
    file_url: str = Field(..., min_length=1)


class AllergenFields(_RowFields):
    allergen: str = Field(..., min_length=1)
    is_present: bool = True


class LabRequirementFields(_RowFields):
    test_name: str = Field(..., min_length=1)
    required: bool = True


class CustomerFields(_RowFields):
    company_name: str = Field(..., min_length=1)
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    comments: Optional[str] = None
    status: str = "Active"

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, value: Any) -> Any:
        return value or "Active"


class ChildRecordOut(BaseModel):
    local_key: str
    server_id: Optional[str] = None
    pending: bool
    syncing: bool = False
    fields: Dict[str, Any] = Field(default_factory=dict)


class CategoryRowsOut(BaseModel):
    category: str
    available: bool = True
    pending_count: int = 0
    records: List[ChildRecordOut] = Field(default_factory=list)


class OnboardingSessionOut(BaseModel):
    session_id: str
    customer_id: Optional[str] = None
    onboarding_id: Optional[str] = None
    onboarding_type: OnboardingType
    status: Optional[OnboardingStatus] = None
    notes: Optional[str] = None
    categories: List[CategoryRowsOut] = Field(default_factory=list)
