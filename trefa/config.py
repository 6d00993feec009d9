import os
import logging
from dotenv import load_dotenv


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def setup_logging(level: str | None = None):
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )


def load_config(app):
    load_dotenv()
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "devkey")

    # CORS: '*' unless the frontend origin is pinned
    app.config["FRONTEND_URL"] = os.getenv("FRONTEND_URL", "*")

    # React build output (index.html + assets)
    app.config["STATIC_DIR"] = os.path.abspath(os.getenv("STATIC_DIR", "dist"))

    # ===== Vehicle listing cache =====
    app.config["LOCAL_STORE_PATH"] = os.getenv(
        "LOCAL_STORE_PATH", os.path.join("data", "local_store.json")
    )
    app.config["VEHICLE_CACHE_TTL_SEC"] = int(os.getenv("VEHICLE_CACHE_TTL_SEC", "300"))
    app.config["VEHICLES_PER_PAGE"] = int(os.getenv("VEHICLES_PER_PAGE", "20"))

    app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO")
    app.config["ACCESS_LOG"] = _env_bool("ACCESS_LOG", "true")


def load_sync_config() -> dict:
    """Settings for the Airtable sync scripts (no defaults for credentials)."""
    load_dotenv()
    return {
        "AIRTABLE_API_KEY": os.getenv("AIRTABLE_API_KEY", ""),
        "AIRTABLE_BASE_ID": os.getenv("AIRTABLE_BASE_ID", ""),
        "AIRTABLE_TABLE_ID": os.getenv("AIRTABLE_TABLE_ID") or os.getenv("AIRTABLE_TABLE_NAME", ""),
        # ~4 requests per second
        "AIRTABLE_RATE_LIMIT_MS": int(os.getenv("AIRTABLE_RATE_LIMIT_MS", "250")),
        "SUPABASE_URL": os.getenv("SUPABASE_URL", "").rstrip("/"),
        "SUPABASE_SERVICE_KEY": os.getenv("SUPABASE_SERVICE_KEY", ""),
        "SUPABASE_BUCKET_NAME": os.getenv("SUPABASE_BUCKET_NAME", "fotos_airtable"),
        "IMAGE_SYNC_INTERVAL_MIN": int(os.getenv("IMAGE_SYNC_INTERVAL_MIN", "30")),
    }


def missing_settings(cfg: dict, *names: str) -> list[str]:
    return [n for n in names if not cfg.get(n)]
