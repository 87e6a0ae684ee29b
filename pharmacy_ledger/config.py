import os
from pathlib import Path

from .constants import DATA_DIR, DB_FILE_NAME, DB_ENV_VAR

BASE_DIR = Path(__file__).resolve().parent
DATA_PATH = BASE_DIR / DATA_DIR


def resolve_db_path() -> Path:
    """Database file to use: $PHARMACY_LEDGER_DB if set, else data/pharmacy.db."""
    override = os.environ.get(DB_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return DATA_PATH / DB_FILE_NAME


DB_PATH = resolve_db_path()
