"""
Path utilities for courtside.
"""

from pathlib import Path

DATA_DIR_NAME = ".courtside"
DB_FILE_NAME = "courtside.sqlite"


def get_data_dir() -> Path:
    """
    Get the user data directory for storing the database.

    Returns:
        .courtside/ in the current working directory (created if missing)
    """
    data_dir = Path.cwd() / DATA_DIR_NAME
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_default_db_path() -> Path:
    """Default SQLite database location."""
    return get_data_dir() / DB_FILE_NAME
