# taxonomy_admin/models/user.py

from flask_login import UserMixin

from .base import BaseModel, db


class User(UserMixin, BaseModel):
    """Application user; also an owner of department and job title references"""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_super_admin = db.Column(db.Boolean, default=False, nullable=False)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=True)

    # Taxonomy references carry no database-level constraint; dangling ids are
    # detected and repaired by the reconciliation engine.
    department_id = db.Column(db.Integer, nullable=True, index=True)
    job_title_id = db.Column(db.Integer, nullable=True, index=True)

    role = db.relationship("Role", back_populates="users")

    def __repr__(self):
        return f"<User {self.username}>"
