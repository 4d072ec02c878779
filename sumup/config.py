"""
SumUp Engine Configuration Module
Centralized configuration for the document processing and summarization core.
"""

import copy
import os
from pathlib import Path

import yaml

# Debug Mode Configuration
DEBUG_MODE = os.environ.get('DEBUG', 'false').lower() == 'true'

# Application Paths
APP_NAME = "SumUp"
APPDATA_DIR = Path(os.environ.get('SUMUP_HOME', os.path.expanduser(f'~/.config/{APP_NAME}')))
LOGS_DIR = APPDATA_DIR / "logs"
STORE_DIR = APPDATA_DIR / "store"

# Ensure directories exist
for directory in [APPDATA_DIR, LOGS_DIR, STORE_DIR]:
    directory.mkdir(parents=True, exist_ok=True)

# Key-value stores (quota counter and drafts live in separate files)
QUOTA_STORE_FILE = STORE_DIR / "quota.json"
DRAFT_STORE_FILE = STORE_DIR / "drafts.json"

# File Processing Limits
MAX_FILE_SIZE_MB = 10
LARGE_FILE_WARNING_MB = 5
MAX_PDF_PAGES = 200

# OCR Configuration
OCR_DPI = 300
MIN_DICTIONARY_CONFIDENCE = 60  # Percentage; below this a PDF is re-read with OCR
MIN_DIGITAL_TEXT_CHARS = 1000

# Summarization Backend (Ollama-compatible REST API)
API_BASE = os.environ.get('SUMUP_API_BASE', "http://localhost:11434")
MODEL_NAME = os.environ.get('SUMUP_MODEL', "gemma3:1b")
API_KEY = os.environ.get('SUMUP_API_KEY') or None
API_KEY_REQUIRED = False
BACKEND_CONTEXT_WINDOW = 8192  # Tokens

# Logging Configuration
LOG_FILE = LOGS_DIR / "processing.log"
DEBUG_FLOW_FILE = LOGS_DIR / "debug_flow.txt"
LOG_FORMAT = "[%(levelname)s %(asctime)s] %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

# --- Processing Configuration System ---
PROCESSING_CONFIG_FILE = Path(__file__).parent.parent / "config" / "processing_config.yaml"

# Built-in values; config/processing_config.yaml is merged on top of these.
DEFAULT_PROCESSING_CONFIG = {
    'strategy': {
        'single_max_chars': 30_000,   # <= this: one request
        'dual_max_chars': 100_000,    # <= this: two chunks + consolidation
        'multi_chunk_chars': 25_000,  # target chunk size for MULTI
        'multi_min_chunks': 4,
        'multi_max_chunks': 6,
        'dual_chunks': 2,
        'dual_offer_min_chars': 20_000,   # DUAL offered above this
        'multi_offer_min_chars': 10_000,  # MULTI offered above this
    },
    'chunking': {
        'boundary': 'section',        # 'section' or 'paragraph'
        'boundary_tolerance': 0.25,   # fraction of target chunk size
    },
    'orchestrator': {
        'max_in_flight': 2,
        'request_timeout_seconds': 30.0,
        'retry_attempts': 3,
        'retry_backoff_seconds': 1.0,
        'retry_backoff_max_seconds': 8.0,
    },
    'quota': {
        'daily_cap': 50,
        'near_limit_ratio': 0.9,
    },
    'drafts': {
        'debounce_seconds': 2.0,
        'max_age_hours': 24,
    },
    'analysis': {
        'min_text_chars': 50,
        'max_key_points': 5,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into a copy of base, descending into nested dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_processing_config(config_path: Path | None = None) -> dict:
    """
    Load processing tunables from YAML, falling back to built-in defaults.

    Args:
        config_path: Path to a processing_config.yaml. If None, uses the
                     file shipped in config/.

    Returns:
        A dictionary with the same shape as DEFAULT_PROCESSING_CONFIG.
    """
    if config_path is None:
        config_path = PROCESSING_CONFIG_FILE

    try:
        with open(config_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"expected a mapping, got {type(data).__name__}")
        if DEBUG_MODE:
            from sumup.logging_config import debug_log
            debug_log(f"[Config] Loaded processing config from {config_path}")
        return _deep_merge(DEFAULT_PROCESSING_CONFIG, data)
    except FileNotFoundError:
        if DEBUG_MODE:
            from sumup.logging_config import debug_log
            debug_log(f"[Config] WARNING: {config_path} not found. Using built-in values.")
        return copy.deepcopy(DEFAULT_PROCESSING_CONFIG)
    except Exception as e:
        from sumup.logging_config import error
        error(f"[Config] Failed to load or parse {config_path}: {e}")
        return copy.deepcopy(DEFAULT_PROCESSING_CONFIG)


PROCESSING_CONFIG = load_processing_config()
# --- End Processing Configuration System ---

# Flattened shortcuts used as constructor defaults across the package
SINGLE_MAX_CHARS = PROCESSING_CONFIG['strategy']['single_max_chars']
DUAL_MAX_CHARS = PROCESSING_CONFIG['strategy']['dual_max_chars']

MAX_IN_FLIGHT = PROCESSING_CONFIG['orchestrator']['max_in_flight']
REQUEST_TIMEOUT_SECONDS = PROCESSING_CONFIG['orchestrator']['request_timeout_seconds']
RETRY_ATTEMPTS = PROCESSING_CONFIG['orchestrator']['retry_attempts']
RETRY_BACKOFF_SECONDS = PROCESSING_CONFIG['orchestrator']['retry_backoff_seconds']
RETRY_BACKOFF_MAX_SECONDS = PROCESSING_CONFIG['orchestrator']['retry_backoff_max_seconds']

DAILY_REQUEST_CAP = PROCESSING_CONFIG['quota']['daily_cap']
NEAR_LIMIT_RATIO = PROCESSING_CONFIG['quota']['near_limit_ratio']

DRAFT_DEBOUNCE_SECONDS = PROCESSING_CONFIG['drafts']['debounce_seconds']
DRAFT_MAX_AGE_HOURS = PROCESSING_CONFIG['drafts']['max_age_hours']

MIN_TEXT_CHARS = PROCESSING_CONFIG['analysis']['min_text_chars']
MAX_KEY_POINTS = PROCESSING_CONFIG['analysis']['max_key_points']
