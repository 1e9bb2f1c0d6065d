from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

DEFAULT_DB_PATH = "db.sq3"
DEFAULT_DATASET = "dataset.hazo.json"
DEFAULT_FETCH_WORKERS = 8

def load_env(project_root: Optional[Path] = None) -> None:
    """Load .env from the project root if present; never overrides the environment."""
    dotenv_path = (project_root or Path.cwd()) / ".env"
    if dotenv_path.exists():
        load_dotenv(dotenv_path, override=False)

def _optional_float(raw: Optional[str]) -> Optional[float]:
    if raw is None or raw.strip() == "":
        return None
    return float(raw)

@dataclass
class Config:
    db_path: Path
    dataset_path: Path
    fetch_workers: int = DEFAULT_FETCH_WORKERS
    # None means picture fetches wait forever: one stalled source stalls the
    # whole cache refresh. Set TAXONOMIA_FETCH_TIMEOUT to bound it.
    fetch_timeout: Optional[float] = None

    @staticmethod
    def from_env() -> "Config":
        load_env()
        db = Path(os.environ.get("TAXONOMIA_DB_PATH", DEFAULT_DB_PATH))
        dataset = Path(os.environ.get("TAXONOMIA_DATASET", DEFAULT_DATASET))
        workers = int(os.environ.get("TAXONOMIA_FETCH_WORKERS", DEFAULT_FETCH_WORKERS))
        timeout = _optional_float(os.environ.get("TAXONOMIA_FETCH_TIMEOUT"))
        return Config(db_path=db, dataset_path=dataset, fetch_workers=max(1, workers), fetch_timeout=timeout)

    def as_dict(self) -> Dict[str, str]:
        return {
            "database": str(self.db_path),
            "dataset": str(self.dataset_path),
            "fetch_workers": str(self.fetch_workers),
            "fetch_timeout": "none" if self.fetch_timeout is None else str(self.fetch_timeout),
        }
