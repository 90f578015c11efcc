"""
Export and preview-then-commit import of taxonomy records.
"""

from .exporter import ALL_KINDS, ExportArtifact, TaxonomyExporter
from .formats import FORMAT_CSV, FORMAT_JSON, SUPPORTED_FORMATS, detect_format, dump_csv, parse_csv, parse_json
from .importer import ImportCommitResult, ImportPreview, TaxonomyImporter
from .preview_cache import ImportPreviewCache

__all__ = [
    "ALL_KINDS",
    "ExportArtifact",
    "TaxonomyExporter",
    "FORMAT_CSV",
    "FORMAT_JSON",
    "SUPPORTED_FORMATS",
    "detect_format",
    "dump_csv",
    "parse_csv",
    "parse_json",
    "ImportCommitResult",
    "ImportPreview",
    "TaxonomyImporter",
    "ImportPreviewCache",
]
