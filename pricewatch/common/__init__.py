# Common utilities
from .config_loader import (
    BreakerSettings,
    EngineSettings,
    TierSettings,
    load_config,
    load_engine_settings,
    load_retailer_entries,
)
from .csv_utils import append_csv_row, read_csv, read_url_list
from .log_config import setup_logging
