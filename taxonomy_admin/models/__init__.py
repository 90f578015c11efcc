# taxonomy_admin/models/__init__.py
"""
Database models package
"""

from .admin import AdminLog
from .base import BaseModel, db
from .project import Project
from .role import Permission, Role, RolePermission
from .taxonomy import (
    Currency,
    Department,
    Division,
    JobTitle,
    ProjectType,
    ProjectTypeActivity,
    TaxonomyRecordMixin,
    Unit,
)
from .user import User

__all__ = [
    "db",
    "BaseModel",
    "User",
    "AdminLog",
    "Role",
    "Permission",
    "RolePermission",
    # Owner models
    "Project",
    # Taxonomy models
    "TaxonomyRecordMixin",
    "Department",
    "JobTitle",
    "ProjectType",
    "ProjectTypeActivity",
    "Division",
    "Currency",
    "Unit",
]
