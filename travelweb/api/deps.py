import logging
import os
from functools import lru_cache
from pathlib import Path

from fastapi import Depends

from travelweb.adapters.clock import SystemClock
from travelweb.adapters.fs.segment_store import JsonlSegmentStore
from travelweb.adapters.sqlite.segment_store import SQLiteSegmentStore
from travelweb.components.estimator import CompletionEstimator, build_estimator_config
from travelweb.components.ingestion import EventIngestionService, build_ingestion_config
from travelweb.core.ports.storage import SegmentStorePort
from travelweb.rules.loader import load_rules
from travelweb.rules.models import Rules

logger = logging.getLogger(__name__)


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("TRAVELWEB_DATA_DIR", "./data"))
        self.rules_path = Path(
            os.environ.get("TRAVELWEB_RULES_PATH", str(self.base_dir / "rules.yaml"))
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules() -> Rules:
    settings = get_settings()
    if not settings.rules_path.exists():
        logger.warning("Rules file %s not found, using defaults", settings.rules_path)
        return Rules()
    return load_rules(settings.rules_path)


# --- Storage ---
def build_segment_store(settings: Settings, rules: Rules) -> SegmentStorePort:
    storage = rules.storage
    if storage.backend == "sqlite":
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        return SQLiteSegmentStore(str(settings.data_dir / storage.sqlite_filename))
    return JsonlSegmentStore(settings.data_dir / storage.segments_dir)


# One store per process: the JSON-lines store's append locks live on the instance
@lru_cache
def get_segment_store() -> SegmentStorePort:
    return build_segment_store(get_settings(), get_rules())


# --- Component Services ---
def get_ingestion_service(
    store: SegmentStorePort = Depends(get_segment_store),
) -> EventIngestionService:
    """Get ingestion component service."""
    return EventIngestionService(
        store=store,
        time_port=SystemClock(),
        config=build_ingestion_config(get_rules().aggregation),
    )


def get_estimator(
    ingestion: EventIngestionService = Depends(get_ingestion_service),
) -> CompletionEstimator:
    """Get estimator component service."""
    return CompletionEstimator(
        source=ingestion,
        time_port=SystemClock(),
        config=build_estimator_config(get_rules().aggregation),
    )
