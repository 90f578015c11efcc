# taxonomy_admin/models/taxonomy.py
"""
Reference ("taxonomy") tables that owner records point to by id.

Every kind shares the columns declared on ``TaxonomyRecordMixin``; label and
extra columns are kind specific. How each kind is labelled, keyed and patched
is described in ``taxonomy_admin.taxonomy.registry``.
"""

from datetime import date, datetime

from .base import BaseModel, db


class TaxonomyRecordMixin:
    """Columns shared by every taxonomy kind"""

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    display_order = db.Column(db.Integer, default=0, nullable=False, index=True)

    def to_dict(self):
        """Serialize every mapped column, rendering dates as ISO strings"""
        payload = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            payload[column.key] = value
        return payload


class Department(TaxonomyRecordMixin, BaseModel):
    """Organizational department (bilingual)"""

    __tablename__ = "departments"

    name_en = db.Column(db.String(200), unique=True, nullable=False, index=True)
    name_ar = db.Column(db.String(200), nullable=True)

    def __repr__(self):
        return f"<Department {self.name_en}>"


class JobTitle(TaxonomyRecordMixin, BaseModel):
    """Job title (bilingual)"""

    __tablename__ = "job_titles"

    title_en = db.Column(db.String(200), unique=True, nullable=False, index=True)
    title_ar = db.Column(db.String(200), nullable=True)

    def __repr__(self):
        return f"<JobTitle {self.title_en}>"


class ProjectType(TaxonomyRecordMixin, BaseModel):
    __tablename__ = "project_types"

    name = db.Column(db.String(200), unique=True, nullable=False, index=True)
    code = db.Column(db.String(50), nullable=True)

    def __repr__(self):
        return f"<ProjectType {self.name}>"


class ProjectTypeActivity(TaxonomyRecordMixin, BaseModel):
    """Activity template scoped to a project type name"""

    __tablename__ = "project_type_activities"

    project_type = db.Column(db.String(200), nullable=False, index=True)
    activity_name = db.Column(db.String(200), nullable=False)
    activity_name_ar = db.Column(db.String(200), nullable=True)
    default_unit = db.Column(db.String(50), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    estimated_rate = db.Column(db.Float, nullable=True)
    is_default = db.Column(db.Boolean, default=False, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("project_type", "activity_name", name="_project_type_activity_uc"),
    )

    def __repr__(self):
        return f"<ProjectTypeActivity {self.project_type}/{self.activity_name}>"


class Division(TaxonomyRecordMixin, BaseModel):
    __tablename__ = "divisions"

    name = db.Column(db.String(200), unique=True, nullable=False, index=True)
    code = db.Column(db.String(50), nullable=True)

    def __repr__(self):
        return f"<Division {self.name}>"


class Currency(TaxonomyRecordMixin, BaseModel):
    """Currency with an exchange rate relative to the default currency"""

    __tablename__ = "currencies"

    code = db.Column(db.String(10), unique=True, nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    symbol = db.Column(db.String(10), nullable=True)
    exchange_rate = db.Column(db.Float, default=1.0, nullable=False)
    is_default = db.Column(db.Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<Currency {self.code}>"


class Unit(TaxonomyRecordMixin, BaseModel):
    """Unit of measure"""

    __tablename__ = "units"

    code = db.Column(db.String(20), unique=True, nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    symbol = db.Column(db.String(20), nullable=True)

    def __repr__(self):
        return f"<Unit {self.code}>"
