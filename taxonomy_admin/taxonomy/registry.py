"""
Kind registry describing every taxonomy table and every owner relation.

The generic store, the integrity checker and the serialization pipeline are
all parameterized by these descriptors instead of carrying per-kind code.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple, Type

from taxonomy_admin.models import (
    Currency,
    Department,
    Division,
    JobTitle,
    Project,
    ProjectType,
    ProjectTypeActivity,
    Unit,
    User,
)

from .errors import ValidationError

COMMON_FIELD_TYPES: Dict[str, str] = {
    "description": "text",
    "is_active": "bool",
    "display_order": "int",
}


@dataclass(frozen=True)
class KindSpec:
    """Metadata describing one taxonomy kind."""

    key: str
    label: str
    model: Type[Any]
    primary_label_field: str
    secondary_label_field: str | None
    natural_key: Tuple[str, ...]
    field_types: Mapping[str, str] = field(default_factory=dict)
    bool_defaults: Mapping[str, bool] = field(default_factory=dict)
    # At most one record of the kind may carry is_default=True.
    single_default: bool = False

    @property
    def table(self) -> str:
        return self.model.__tablename__

    @property
    def patchable_fields(self) -> Tuple[str, ...]:
        """Fields a caller may write; ``id`` and timestamps are never patchable."""
        return tuple(self.all_field_types)

    @property
    def all_field_types(self) -> Dict[str, str]:
        merged = dict(self.field_types)
        merged.update(COMMON_FIELD_TYPES)
        return merged

    def record_label(self, record: Any) -> str | None:
        value = getattr(record, self.primary_label_field, None)
        if value is None or str(value).strip() == "":
            return None
        return str(value)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "table": self.table,
            "primary_label_field": self.primary_label_field,
            "secondary_label_field": self.secondary_label_field,
            "natural_key": list(self.natural_key),
            "fields": list(self.patchable_fields),
            "single_default": self.single_default,
        }


@dataclass(frozen=True)
class OwnerRelation:
    """A nullable owner column pointing at one taxonomy kind."""

    name: str
    owner: str
    model: Type[Any]
    field: str
    kind: str

    @property
    def column(self):
        return getattr(self.model, self.field)


_KINDS: "OrderedDict[str, KindSpec]" = OrderedDict(
    (
        (
            "department",
            KindSpec(
                key="department",
                label="Department",
                model=Department,
                primary_label_field="name_en",
                secondary_label_field="name_ar",
                natural_key=("name_en",),
                field_types={"name_en": "text", "name_ar": "text"},
            ),
        ),
        (
            "job_title",
            KindSpec(
                key="job_title",
                label="Job Title",
                model=JobTitle,
                primary_label_field="title_en",
                secondary_label_field="title_ar",
                natural_key=("title_en",),
                field_types={"title_en": "text", "title_ar": "text"},
            ),
        ),
        (
            "project_type",
            KindSpec(
                key="project_type",
                label="Project Type",
                model=ProjectType,
                primary_label_field="name",
                secondary_label_field="code",
                natural_key=("name",),
                field_types={"name": "text", "code": "text"},
            ),
        ),
        (
            "project_activity",
            KindSpec(
                key="project_activity",
                label="Project Activity",
                model=ProjectTypeActivity,
                primary_label_field="activity_name",
                secondary_label_field="activity_name_ar",
                natural_key=("project_type", "activity_name"),
                field_types={
                    "project_type": "text",
                    "activity_name": "text",
                    "activity_name_ar": "text",
                    "default_unit": "text",
                    "category": "text",
                    "estimated_rate": "float",
                    "is_default": "bool",
                },
                bool_defaults={"is_default": False},
            ),
        ),
        (
            "division",
            KindSpec(
                key="division",
                label="Division",
                model=Division,
                primary_label_field="name",
                secondary_label_field="code",
                natural_key=("name",),
                field_types={"name": "text", "code": "text"},
            ),
        ),
        (
            "currency",
            KindSpec(
                key="currency",
                label="Currency",
                model=Currency,
                primary_label_field="code",
                secondary_label_field="name",
                natural_key=("code",),
                field_types={
                    "code": "text",
                    "name": "text",
                    "symbol": "text",
                    "exchange_rate": "float",
                    "is_default": "bool",
                },
                bool_defaults={"is_default": False},
                single_default=True,
            ),
        ),
        (
            "unit",
            KindSpec(
                key="unit",
                label="Unit",
                model=Unit,
                primary_label_field="code",
                secondary_label_field="name",
                natural_key=("code",),
                field_types={"code": "text", "name": "text", "symbol": "text"},
            ),
        ),
    )
)

_OWNER_RELATIONS: Tuple[OwnerRelation, ...] = (
    OwnerRelation("users.department_id", "user", User, "department_id", "department"),
    OwnerRelation("users.job_title_id", "user", User, "job_title_id", "job_title"),
    OwnerRelation("projects.project_type_id", "project", Project, "project_type_id", "project_type"),
    OwnerRelation("projects.primary_activity_id", "project", Project, "primary_activity_id", "project_activity"),
    OwnerRelation("projects.division_id", "project", Project, "division_id", "division"),
    OwnerRelation("projects.currency_id", "project", Project, "currency_id", "currency"),
    OwnerRelation("projects.unit_id", "project", Project, "unit_id", "unit"),
)


def get_kind_registry() -> Mapping[str, KindSpec]:
    """Return the ordered registry of taxonomy kinds."""
    return _KINDS


def get_owner_relations() -> Tuple[OwnerRelation, ...]:
    return _OWNER_RELATIONS


def resolve_kind(key: str) -> KindSpec:
    """Look up a kind by key, raising ``ValidationError`` on unknown keys."""
    normalized = (key or "").strip().lower().replace("-", "_")
    try:
        return _KINDS[normalized]
    except KeyError:
        raise ValidationError(
            f"Unknown taxonomy kind '{key}'. Expected one of: " + ", ".join(_KINDS),
            field="kind",
        ) from None


def relations_for_kind(kind: str) -> Tuple[OwnerRelation, ...]:
    return tuple(relation for relation in _OWNER_RELATIONS if relation.kind == kind)


def kind_order(kind: str) -> int:
    """Position of ``kind`` in registry order; unknown kinds sort last."""
    for index, key in enumerate(_KINDS):
        if key == kind:
            return index
    return len(_KINDS)
