# Contains constants and defaults shared across the package
import os

# Checked in this order against a nested sample; the first one present becomes
# the child table's primary key.
PROMOTABLE_KEY_CANDIDATES = ("id", "iso_3166_1", "iso_639_1")

DEFAULT_ROOT_TABLE_NAME = "rootTable"
DEFAULT_PRIMARY_KEY = "id"
DEFAULT_ENCODING = "utf-8"

CSV_EXTENSION = ".csv"

# Root tables fed by the TMDB source, with their primary keys
TMDB_ROOT_TABLES = {
    "movies": "id",
    "cast": "credit_id",
    "crew": "credit_id",
    "people": "id",
}

TMDB_API_BASE_URL = "https://api.themoviedb.org/3"
TMDB_DEFAULT_LANGUAGE = "en-US"
TMDB_MIN_INTERVAL_SECONDS = 0.1


def tmdb_api_key_from_env():
    """Returns the TMDB_API_KEY environment variable, or None when unset/blank."""
    return (os.getenv("TMDB_API_KEY") or "").strip() or None
