# taxonomy_admin/routes/__init__.py
"""
Application routes package
"""

from .taxonomy import register_taxonomy_routes


def init_routes(app):
    """Initialize all application routes"""
    register_taxonomy_routes(app)
