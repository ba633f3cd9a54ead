from dotenv import load_dotenv
import os

load_dotenv()

class PrepareConfig():
    """Configuration for the GTFS preparation pipeline."""
    extract_dir: str = os.getenv("PREPARE_EXTRACT_DIR", "./gtfs_in")
    output_dir: str = os.getenv("PREPARE_OUTPUT_DIR", "./gtfs_out")
    inner_archive_pattern: str = os.getenv("PREPARE_INNER_ARCHIVE", "google_transit.zip")
    max_workers: int = int(os.getenv("PREPARE_MAX_WORKERS", "8"))
    channel_capacity: int = int(os.getenv("PREPARE_CHANNEL_CAPACITY", "1000"))
    bundle_output: bool = os.getenv("PREPARE_BUNDLE_OUTPUT", "true").lower() == "true"
    keep_workdirs: bool = os.getenv("PREPARE_KEEP_WORKDIRS", "false").lower() == "true"

prepare_config = PrepareConfig()

class LoggingConfig():
    level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logging_config = LoggingConfig()
