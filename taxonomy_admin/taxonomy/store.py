"""
Persistence facade for taxonomy records and the owner rows that reference them.

Every write commits on its own so one failing item never takes its neighbours
down with it. SQLAlchemy failures are rolled back and translated into the
errors declared in ``taxonomy_admin.taxonomy.errors``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from taxonomy_admin.models import db

from .errors import (
    ConstraintViolationError,
    NotFoundError,
    TaxonomyError,
    TransportFailureError,
    ValidationError,
)
from .normalize import coerce_field
from .registry import KindSpec, OwnerRelation, resolve_kind


def _integrity_message(exc: IntegrityError) -> str:
    detail = str(getattr(exc, "orig", None) or exc).strip()
    return f"constraint violation ({detail})"


class _StoreBase:
    def __init__(self, session=None) -> None:
        self.session = session if session is not None else db.session

    @contextmanager
    def _reading(self, description: str):
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TransportFailureError(f"Database error while {description}: {exc}") from exc

    @contextmanager
    def _writing(self, description: str):
        try:
            yield
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConstraintViolationError(_integrity_message(exc), constraint=type(exc.orig).__name__) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TransportFailureError(f"Database error while {description}: {exc}") from exc
        except TaxonomyError:
            self.session.rollback()
            raise


class TaxonomyStore(_StoreBase):
    """Generic CRUD over every registered taxonomy kind."""

    @staticmethod
    def _spec(kind: str | KindSpec) -> KindSpec:
        return kind if isinstance(kind, KindSpec) else resolve_kind(kind)

    def list_records(self, kind, *, active_only: bool = False) -> List[Any]:
        """Records of ``kind`` ordered by ``display_order`` then id."""
        spec = self._spec(kind)
        model = spec.model
        with self._reading(f"listing {spec.key} records"):
            query = model.query
            if active_only:
                query = query.filter(model.is_active.is_(True))
            return query.order_by(model.display_order.asc(), model.id.asc()).all()

    def count(self, kind, *, active_only: bool = False) -> int:
        spec = self._spec(kind)
        model = spec.model
        with self._reading(f"counting {spec.key} records"):
            query = self.session.query(func.count(model.id))
            if active_only:
                query = query.filter(model.is_active.is_(True))
            return int(query.scalar() or 0)

    def ids(self, kind) -> set:
        spec = self._spec(kind)
        with self._reading(f"loading {spec.key} ids"):
            return {row[0] for row in self.session.query(spec.model.id).all()}

    def get(self, kind, record_id) -> Any:
        spec = self._spec(kind)
        with self._reading(f"loading {spec.key} {record_id}"):
            record = self.session.get(spec.model, record_id)
        if record is None:
            raise NotFoundError(spec.key, record_id)
        return record

    def insert(self, kind, values: Mapping[str, Any]) -> Any:
        spec = self._spec(kind)
        prepared = self.prepare_values(spec, values)
        self._natural_key_criteria(spec, prepared)
        record = spec.model(**prepared)
        with self._writing(f"inserting {spec.key}"):
            self.session.add(record)
            self._enforce_single_default(spec, record, prepared)
        return record

    def update(self, kind, record_id, patch: Mapping[str, Any]) -> Any:
        """
        Apply ``patch`` to one record.

        Fields the kind does not declare are ignored, so a single patch can be
        applied to records of different kinds.
        """
        spec = self._spec(kind)
        prepared = self.prepare_values(spec, patch)
        with self._writing(f"updating {spec.key} {record_id}"):
            record = self.get(spec, record_id)
            for field_name, value in prepared.items():
                setattr(record, field_name, value)
            self._enforce_single_default(spec, record, prepared)
        return record

    def delete(self, kind, record_id) -> None:
        spec = self._spec(kind)
        with self._writing(f"deleting {spec.key} {record_id}"):
            record = self.get(spec, record_id)
            if spec.single_default and record.is_default:
                raise ConstraintViolationError(
                    f"cannot delete the default {spec.label.lower()}", constraint="single_default"
                )
            self.session.delete(record)

    def upsert(self, kind, values: Mapping[str, Any]) -> Tuple[Any, bool]:
        """
        Insert ``values`` or update the record sharing its natural key.

        Returns ``(record, created)``.
        """
        spec = self._spec(kind)
        prepared = self.prepare_values(spec, values)
        criteria = self._natural_key_criteria(spec, prepared)
        with self._writing(f"upserting {spec.key}"):
            with self._reading(f"looking up {spec.key} by natural key"):
                record = spec.model.query.filter_by(**criteria).first()
            created = record is None
            if created:
                record = spec.model(**prepared)
                self.session.add(record)
            else:
                for field_name, value in prepared.items():
                    setattr(record, field_name, value)
            self._enforce_single_default(spec, record, prepared)
        return record, created

    def _enforce_single_default(self, spec: KindSpec, record: Any, prepared: Mapping[str, Any]) -> None:
        """Clear ``is_default`` on every other record when ``record`` becomes the default."""
        if not spec.single_default or prepared.get("is_default") is not True:
            return
        self.session.flush()
        model = spec.model
        model.query.filter(model.is_default.is_(True), model.id != record.id).update(
            {"is_default": False}, synchronize_session=False
        )

    def set_display_order(self, kind, record_id, order: int) -> None:
        self.update(kind, record_id, {"display_order": order})

    @staticmethod
    def prepare_values(spec: KindSpec, values: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Keep the fields ``spec`` declares and coerce them by field type.

        Booleans and numbers that cannot be interpreted are dropped rather than
        written, leaving the column untouched (or at its default on insert).
        """
        field_types = spec.all_field_types
        prepared: Dict[str, Any] = {}
        for field_name, raw in (values or {}).items():
            field_type = field_types.get(field_name)
            if field_type is None:
                continue
            value = coerce_field(field_type, raw)
            if value is None and field_type in ("bool", "int", "float"):
                continue
            prepared[field_name] = value
        return prepared

    @staticmethod
    def _natural_key_criteria(spec: KindSpec, values: Mapping[str, Any]) -> Dict[str, Any]:
        criteria = {}
        for field_name in spec.natural_key:
            value = values.get(field_name)
            if value is None or str(value).strip() == "":
                raise ValidationError(f"missing required field '{field_name}'", field=field_name)
            criteria[field_name] = value
        return criteria


class OwnerStore(_StoreBase):
    """Access to owner rows (users, projects) through their tracked relations."""

    def iter_referencing_owners(self, relation: OwnerRelation) -> List[Any]:
        """Owners whose ``relation`` column is not null, ordered by id."""
        model = relation.model
        with self._reading(f"scanning {relation.name}"):
            return model.query.filter(relation.column.isnot(None)).order_by(model.id.asc()).all()

    def count_references(self, relation: OwnerRelation, record_id: int | None = None) -> int:
        with self._reading(f"counting {relation.name} references"):
            query = self.session.query(func.count(relation.model.id))
            if record_id is None:
                query = query.filter(relation.column.isnot(None))
            else:
                query = query.filter(relation.column == record_id)
            return int(query.scalar() or 0)

    def reference_counts(self, relation: OwnerRelation) -> Dict[int, int]:
        """Map of referenced id to number of referencing owners."""
        with self._reading(f"grouping {relation.name} references"):
            rows = (
                self.session.query(relation.column, func.count(relation.model.id))
                .filter(relation.column.isnot(None))
                .group_by(relation.column)
                .all()
            )
        return {int(value): int(count) for value, count in rows}

    def update_owner(self, model, owner_id, fields: Iterable[str]) -> Any:
        """Null the given reference columns on one owner in a single write."""
        fields = tuple(fields)
        with self._writing(f"updating {model.__tablename__} {owner_id}"):
            owner = self.session.get(model, owner_id)
            if owner is None:
                raise NotFoundError(model.__tablename__, owner_id)
            for field_name in fields:
                setattr(owner, field_name, None)
        return owner

    def clear_relation(self, relation: OwnerRelation) -> int:
        """Null every non-null value of ``relation``; returns affected rows."""
        with self._writing(f"clearing {relation.name}"):
            affected = (
                relation.model.query.filter(relation.column.isnot(None))
                .update({relation.field: None}, synchronize_session=False)
            )
        return int(affected or 0)


def owner_label(owner: Any) -> str:
    for attribute in ("username", "code", "name"):
        value = getattr(owner, attribute, None)
        if value:
            return str(value)
    return str(owner.id)
