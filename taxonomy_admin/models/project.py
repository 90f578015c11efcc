# taxonomy_admin/models/project.py

from .base import BaseModel, db


class Project(BaseModel):
    """Project record referencing several taxonomy kinds"""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)

    # Taxonomy references without a database-level constraint
    project_type_id = db.Column(db.Integer, nullable=True, index=True)
    primary_activity_id = db.Column(db.Integer, nullable=True, index=True)
    division_id = db.Column(db.Integer, nullable=True, index=True)
    currency_id = db.Column(db.Integer, nullable=True, index=True)
    unit_id = db.Column(db.Integer, nullable=True, index=True)

    def __repr__(self):
        return f"<Project {self.code}>"
