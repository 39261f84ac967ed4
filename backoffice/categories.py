"""Child row categories attached to a customer onboarding."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .schemas import (
    AllergenFields,
    DocumentFields,
    IngredientFields,
    LabRequirementFields,
    OnboardingType,
    PackagingFields,
    ProductFields,
)

PARENT_FOREIGN_KEY = "onboarding_id"


def _describe_errors(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "payload"
        if error.get("type") in {"missing", "string_too_short"} or error.get("input") is None:
            parts.append(f"{location} is required")
        else:
            parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


@dataclass(frozen=True)
class CategorySchema:
    """Field schema and table layout for one category of onboarding rows.

    ``columns`` maps a field name to its column name where the two differ.
    """

    name: str
    table: str
    model: Type[BaseModel]
    columns: Mapping[str, str] = field(default_factory=dict)
    available_for: Optional[FrozenSet[OnboardingType]] = None

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(self.model.model_fields)

    def is_available(self, onboarding_type: OnboardingType) -> bool:
        return self.available_for is None or onboarding_type in self.available_for

    def validate(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a JSON-ready payload or raise ValidationError."""

        try:
            parsed = self.model.model_validate(dict(fields))
        except PydanticValidationError as exc:
            raise ValidationError(self.name, _describe_errors(exc)) from exc
        return parsed.model_dump(mode="json")

    def merge_patch(self, current: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = set(patch) - set(self.field_names)
        if unknown:
            raise ValidationError(self.name, f"unknown fields: {', '.join(sorted(unknown))}")
        return self.validate({**current, **patch})

    def to_columns(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        return {self.columns.get(key, key): value for key, value in fields.items()}

    def from_row(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name in self.field_names:
            column = self.columns.get(name, name)
            values[name] = row.get(column)
        return values


PRODUCT = CategorySchema(
    name="product",
    table="onboarding_products",
    model=ProductFields,
    columns={"name": "product_name"},
)
PACKAGING = CategorySchema(
    name="packaging",
    table="onboarding_packaging",
    model=PackagingFields,
    columns={"type": "packaging_type"},
)
INGREDIENT = CategorySchema(
    name="ingredient",
    table="onboarding_ingredients",
    model=IngredientFields,
    columns={"name": "ingredient_name"},
)
DOCUMENT = CategorySchema(
    name="document",
    table="onboarding_documents",
    model=DocumentFields,
)
ALLERGEN = CategorySchema(
    name="allergen",
    table="onboarding_allergens",
    model=AllergenFields,
    available_for=frozenset({OnboardingType.BNUTTY}),
)
LAB_REQUIREMENT = CategorySchema(
    name="lab_requirement",
    table="onboarding_lab_requirements",
    model=LabRequirementFields,
)

CATEGORIES: Dict[str, CategorySchema] = {
    schema.name: schema
    for schema in (PRODUCT, PACKAGING, INGREDIENT, DOCUMENT, ALLERGEN, LAB_REQUIREMENT)
}


def get_category(name: str) -> CategorySchema:
    try:
        return CATEGORIES[name]
    except KeyError as exc:
        raise KeyError(f"Unknown category: {name}") from exc
