"""
Constants for equipment log ingestion: table names, encodings and markers.
"""

# =============================================================================
# Source Files
# =============================================================================

# Equipment software writes its logs in the Korean ANSI code page
DEFAULT_SOURCE_ENCODING = "cp949"

# Line-oriented equipment settings file read for the equipment id
DEFAULT_SETTINGS_FILE = "Settings.ini"
EQPID_KEY = "Eqpid"

# Shared-open readiness polling
DEFAULT_OPEN_RETRIES = 5
DEFAULT_OPEN_RETRY_DELAY_SECONDS = 0.5

# =============================================================================
# Batching
# =============================================================================

DEFAULT_BATCH_SIZE = 50
DEFAULT_FLUSH_INTERVAL_SECONDS = 3.0

# =============================================================================
# Target Tables
# =============================================================================

TABLE_WAFER_MAP = "plg_wf_map"
TABLE_PREALIGN = "plg_prealign"
TABLE_WAFER_FLAT = "plg_wf_flat"
TABLE_SPECTRUM = "plg_onto_spectrum"
TABLE_ERROR = "plg_error"
TABLE_EQUIPMENT_INFO = "itm_info"

# Reference tables (read only)
TABLE_ERROR_SEVERITY_MAP = "err_severity_map"
TABLE_REF_EQUIPMENT = "ref_equipment"

# Column holding the clock-corrected timestamp on every target table
CORRECTED_TS_COLUMN = "serv_ts"

# =============================================================================
# Wafer Map Transfer
# =============================================================================

DEFAULT_WAFER_MAP_API_PORT = 8080
WAFER_MAP_HEALTH_PATH = "/api/FileUpload/health"
WAFER_MAP_UPLOAD_PATH = "/api/FileUpload/upload"
WAFER_MAP_HEALTH_TIMEOUT_SECONDS = 5.0
WAFER_MAP_UPLOAD_TIMEOUT_SECONDS = 300.0

# =============================================================================
# Logging
# =============================================================================

DEFAULT_LOG_DIR = "Logs"
LOG_WRITE_ATTEMPTS = 3
LOG_WRITE_RETRY_DELAY_SECONDS = 0.25
