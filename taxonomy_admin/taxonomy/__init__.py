"""
Taxonomy administration core.

Wires the ``flask taxonomy`` CLI group and preview retention settings onto the
application; the pipeline modules themselves need only an app context.
"""

from __future__ import annotations

from flask import Flask

from .cancellation import CancellationToken
from .cli import taxonomy_cli
from .errors import (
    ConstraintViolationError,
    FormatError,
    NotFoundError,
    TaxonomyError,
    TransportFailureError,
    ValidationError,
)
from .registry import KindSpec, OwnerRelation, get_kind_registry, get_owner_relations, resolve_kind
from .serialization import ImportPreviewCache

TAXONOMY_EXTENSION_KEY = "taxonomy"

__all__ = [
    "init_taxonomy",
    "TAXONOMY_EXTENSION_KEY",
    "CancellationToken",
    "TaxonomyError",
    "NotFoundError",
    "ConstraintViolationError",
    "ValidationError",
    "TransportFailureError",
    "FormatError",
    "KindSpec",
    "OwnerRelation",
    "get_kind_registry",
    "get_owner_relations",
    "resolve_kind",
]


def init_taxonomy(app: Flask) -> None:
    """Register the CLI group and record taxonomy settings on the app."""
    ImportPreviewCache.configure(app.config.get("TAXONOMY_PREVIEW_TTL_SECONDS", 900))

    # Avoid duplicate registrations when running tests
    if taxonomy_cli.name in app.cli.commands:
        app.cli.commands.pop(taxonomy_cli.name)
    app.cli.add_command(taxonomy_cli)

    app.extensions[TAXONOMY_EXTENSION_KEY] = {
        "kinds": tuple(get_kind_registry()),
        "relations": tuple(relation.name for relation in get_owner_relations()),
    }
    app.logger.info("Taxonomy administration initialised with kinds: %s", ", ".join(get_kind_registry()))
