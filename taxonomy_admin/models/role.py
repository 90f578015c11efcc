# taxonomy_admin/models/role.py

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .base import BaseModel, db


class Role(BaseModel):
    """Model for user roles in the system"""

    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_system_role = db.Column(
        db.Boolean, default=False, nullable=False
    )  # System roles cannot be deleted

    # Relationships
    permissions = db.relationship(
        "RolePermission", back_populates="role", cascade="all, delete-orphan"
    )
    users = db.relationship("User", back_populates="role")

    def __repr__(self):
        return f"<Role {self.name}>"

    def has_permission(self, permission_name):
        """Check if role grants a specific capability"""
        return any(rp.permission.name == permission_name for rp in self.permissions)

    def grant(self, permission):
        """Attach a permission to this role if it is not already granted"""
        if self.has_permission(permission.name):
            return
        self.permissions.append(RolePermission(permission=permission))


class Permission(BaseModel):
    """Model for granular capabilities"""

    __tablename__ = "permissions"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(50), nullable=True)  # e.g., 'taxonomy'

    # Relationships
    roles = db.relationship(
        "RolePermission", back_populates="permission", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Permission {self.name}>"

    @staticmethod
    def find_by_name(name):
        """Find permission by name with error handling"""
        try:
            return Permission.query.filter_by(name=name).first()
        except SQLAlchemyError as e:
            current_app.logger.error(f"Database error finding permission by name {name}: {str(e)}")
            return None


class RolePermission(BaseModel):
    """Junction table for Role and Permission many-to-many relationship"""

    __tablename__ = "role_permissions"

    id = db.Column(db.Integer, primary_key=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False)
    permission_id = db.Column(db.Integer, db.ForeignKey("permissions.id"), nullable=False)

    # Relationships
    role = db.relationship("Role", back_populates="permissions")
    permission = db.relationship("Permission", back_populates="roles")

    # Unique constraint
    __table_args__ = (db.UniqueConstraint("role_id", "permission_id", name="_role_permission_uc"),)

    def __repr__(self):
        return f"<RolePermission role={self.role_id} permission={self.permission_id}>"
