# taxonomy_admin/utils/permissions.py

from functools import wraps

from flask import jsonify
from flask_login import current_user

from taxonomy_admin.models import Permission, Role, db

VIEW_TAXONOMY = "view_taxonomy"
MANAGE_TAXONOMY = "manage_taxonomy"
RECONCILE_TAXONOMY = "reconcile_taxonomy"
IMPORT_TAXONOMY = "import_taxonomy"
EXPORT_TAXONOMY = "export_taxonomy"

TAXONOMY_PERMISSIONS = {
    VIEW_TAXONOMY: "View taxonomy records and integration status",
    MANAGE_TAXONOMY: "Create, edit, activate and delete taxonomy records",
    RECONCILE_TAXONOMY: "Run sync, orphan cleanup and assignment reset",
    IMPORT_TAXONOMY: "Preview and commit taxonomy imports",
    EXPORT_TAXONOMY: "Export taxonomy records",
}


def get_user_role(user):
    """Get the role assigned to a user, if any"""
    if not user or not user.is_authenticated:
        return None
    if user.is_super_admin:
        return Role.query.filter_by(name="SUPER_ADMIN").first()
    return user.role


def has_permission(user, permission_name):
    """Check if user has a specific permission"""
    if not user or not user.is_authenticated:
        return False

    # Super admins have all permissions
    if user.is_super_admin:
        return True

    role = get_user_role(user)
    if role is None:
        return False
    return role.has_permission(permission_name)


def permission_required(permission_name):
    """
    Decorator to require a specific permission on a JSON endpoint.

    Anonymous callers get 401 and authenticated callers lacking the
    permission get 403; both as ``{"error": ...}`` bodies.
    """

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({"error": "Authentication required"}), 401

            # Super admins bypass permission checks
            if current_user.is_super_admin:
                return f(*args, **kwargs)

            if not has_permission(current_user, permission_name):
                return jsonify({"error": f"Permission '{permission_name}' required"}), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator


def ensure_taxonomy_permissions():
    """Create any missing taxonomy permission rows and return them by name"""
    permissions = {}
    for name, description in TAXONOMY_PERMISSIONS.items():
        permission = Permission.find_by_name(name)
        if permission is None:
            permission = Permission(
                name=name,
                display_name=name.replace("_", " ").title(),
                description=description,
                category="taxonomy",
            )
            db.session.add(permission)
        permissions[name] = permission
    db.session.commit()
    return permissions
