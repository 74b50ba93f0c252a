import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CONCURRENCY = 30
DEFAULT_CHUNK_SIZE = 1000


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    return float(raw)


@dataclass(frozen=True)
class ImportSettings:
    csv_path: str
    lookup_url: str
    secret_key: str
    csv_encoding: str = "utf-8"
    csv_chunk_size: int = DEFAULT_CHUNK_SIZE
    lookup_timeout: float | None = None
    concurrency: int = DEFAULT_CONCURRENCY
    wait_for_completion: bool = False


def load_import_settings() -> ImportSettings:
    return ImportSettings(
        csv_path=os.getenv("HOUJIN_CSV_PATH", "data/zenkoku_houjin.csv"),
        lookup_url=os.getenv("HOUJIN_LOOKUP_URL", "http://localhost:9000/lambda-url/zenkoku-houjin/"),
        secret_key=os.getenv("SECRET_KEY", ""),
        csv_encoding=os.getenv("HOUJIN_CSV_ENCODING", "utf-8"),
        csv_chunk_size=int(os.getenv("HOUJIN_CSV_CHUNK_SIZE", str(DEFAULT_CHUNK_SIZE))),
        lookup_timeout=_env_float("HOUJIN_LOOKUP_TIMEOUT"),
        concurrency=int(os.getenv("HOUJIN_IMPORT_CONCURRENCY", str(DEFAULT_CONCURRENCY))),
        wait_for_completion=_env_flag("IMPORT_WAIT_FOR_COMPLETION"),
    )


def get_import_settings() -> ImportSettings:
    return load_import_settings()
