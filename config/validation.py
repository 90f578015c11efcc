# config/validation.py

"""
Environment variable validation for the taxonomy admin application.
Validates required environment variables at startup.
"""

import os
import sys
from typing import List, Tuple

_NUMERIC_SETTINGS = (
    "TAXONOMY_IMPORT_PREVIEW_ROWS",
    "TAXONOMY_IMPORT_MAX_UPLOAD_MB",
    "TAXONOMY_PREVIEW_TTL_SECONDS",
)


def validate_environment(flask_env: str = None) -> Tuple[bool, List[str]]:
    """
    Validate required environment variables.

    Args:
        flask_env: Flask environment (development, production, testing)
                  If None, reads from FLASK_ENV environment variable

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if flask_env is None:
        flask_env = os.environ.get("FLASK_ENV", "development")

    errors = []

    # Only validate in production
    if flask_env != "production":
        return True, []

    secret_key = os.environ.get("SECRET_KEY", "")
    if not secret_key or secret_key == "your-secret-key" or secret_key == "your_secret_key":
        errors.append(
            "SECRET_KEY is required in production and must not be the default value. "
            'Generate a secure key: python -c "import secrets; print(secrets.token_hex(32))"'
        )

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        errors.append(
            "DATABASE_URL is required in production. "
            "Set it to your PostgreSQL connection string."
        )

    for name in _NUMERIC_SETTINGS:
        raw_value = os.environ.get(name)
        if raw_value is None:
            continue
        try:
            if int(raw_value) <= 0:
                errors.append(f"{name} must be a positive integer (got {raw_value!r})")
        except ValueError:
            errors.append(f"{name} must be a positive integer (got {raw_value!r})")

    log_format = os.environ.get("LOG_FORMAT")
    if log_format and log_format.lower() not in ("json", "text"):
        errors.append(f"LOG_FORMAT must be 'json' or 'text' (got {log_format!r})")

    is_valid = len(errors) == 0
    return is_valid, errors


def validate_and_exit(flask_env: str = None) -> None:
    """
    Validate environment variables and exit with error if validation fails.
    Intended to be called at application startup.

    Args:
        flask_env: Flask environment (development, production, testing)
    """
    is_valid, errors = validate_environment(flask_env)

    if not is_valid:
        print("=" * 80, file=sys.stderr)
        print("ENVIRONMENT VALIDATION FAILED", file=sys.stderr)
        print("=" * 80, file=sys.stderr)
        print("\nThe following environment variables are missing or invalid:\n", file=sys.stderr)

        for i, error in enumerate(errors, 1):
            print(f"{i}. {error}", file=sys.stderr)

        print("\n" + "=" * 80, file=sys.stderr)
        print("Please check your .env file or environment variables.", file=sys.stderr)
        print("See .env.example for required configuration.", file=sys.stderr)
        print("=" * 80, file=sys.stderr)

        sys.exit(1)
