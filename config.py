import os
import sys

from dotenv import load_dotenv

from enums.runtime_environment import RuntimeEnvironment

# Load .env but don't override existing environment variables
# This allows test scripts to set RUNTIME_ENVIRONMENT=TEST before import
load_dotenv(".env", override=False)

# Parse RUNTIME_ENVIRONMENT with clear error message on misconfiguration
try:
    _runtime_env_str = os.environ.get("RUNTIME_ENVIRONMENT")
    if not _runtime_env_str:
        raise ValueError("RUNTIME_ENVIRONMENT environment variable is not set")
    RUNTIME_ENVIRONMENT = RuntimeEnvironment(_runtime_env_str)
except ValueError as e:
    valid_values = [env.value for env in RuntimeEnvironment]
    print(f"\n ERROR: Invalid RUNTIME_ENVIRONMENT configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Valid values: {', '.join(valid_values)}", file=sys.stderr)
    print(f"Current value: {os.environ.get('RUNTIME_ENVIRONMENT', '(not set)')}", file=sys.stderr)
    print(f"\nAdd to .env: RUNTIME_ENVIRONMENT={valid_values[0]}\n", file=sys.stderr)
    sys.exit(1)

# Database
DB_NAME = os.environ.get("DB_NAME", "marketplace.db")
DB_URL = os.environ.get("DB_URL", f"sqlite+aiosqlite:///data/{DB_NAME}")
DB_MAX_RETRIES = int(os.environ.get("DB_MAX_RETRIES", "3"))  # Attempts for transient store errors
DB_RETRY_DELAY_BASE = float(os.environ.get("DB_RETRY_DELAY_BASE", "0.1"))  # Seconds, doubled per attempt

# Payments (manual PromptPay bank transfer)
PROMPTPAY_ID = os.environ.get("PROMPTPAY_ID", "")  # Phone number, tax id or e-wallet id receiving transfers
CURRENCY_CODE = os.environ.get("CURRENCY_CODE", "THB")

# Parse PAGE_ENTRIES with error handling
try:
    PAGE_ENTRIES = int(os.environ.get("PAGE_ENTRIES", "20"))
    if PAGE_ENTRIES <= 0:
        raise ValueError(f"PAGE_ENTRIES must be positive (got: {PAGE_ENTRIES})")
    MAX_PAGE_SIZE = int(os.environ.get("MAX_PAGE_SIZE", "100"))
    if MAX_PAGE_SIZE < PAGE_ENTRIES:
        raise ValueError(f"MAX_PAGE_SIZE must be >= PAGE_ENTRIES (got: {MAX_PAGE_SIZE})")
except ValueError as e:
    print(f"\n ERROR: Invalid pagination configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Expected: Positive integers (e.g., PAGE_ENTRIES=20, MAX_PAGE_SIZE=100)\n", file=sys.stderr)
    sys.exit(1)

# Watermarking
try:
    WATERMARK_OPACITY = float(os.environ.get("WATERMARK_OPACITY", "0.3"))
    if not 0 < WATERMARK_OPACITY <= 1:
        raise ValueError(f"WATERMARK_OPACITY must be in (0, 1] (got: {WATERMARK_OPACITY})")
    WATERMARK_ROTATION = int(os.environ.get("WATERMARK_ROTATION", "45"))
except ValueError as e:
    print(f"\n ERROR: Invalid watermark configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Current value: WATERMARK_OPACITY={os.environ.get('WATERMARK_OPACITY', '(not set)')}, "
          f"WATERMARK_ROTATION={os.environ.get('WATERMARK_ROTATION', '(not set)')}\n", file=sys.stderr)
    sys.exit(1)

# File storage
BLOB_STORE_ROOT = os.environ.get("BLOB_STORE_ROOT", "./storage")  # Private source PDFs, never served directly
DOWNLOAD_TEMP_DIR = os.environ.get("DOWNLOAD_TEMP_DIR", "./temp")  # Watermarked copies, removed after streaming
DOWNLOAD_CHUNK_SIZE = int(os.environ.get("DOWNLOAD_CHUNK_SIZE", str(64 * 1024)))

# Logging Configuration
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_MASK_SECRETS = os.environ.get("LOG_MASK_SECRETS", "true") == "true"  # Mask sensitive data in logs

# Log Retention: Environment-specific defaults
# Dev: 30 days for debugging
# Prod: 5 days default to save disk space
if RUNTIME_ENVIRONMENT == RuntimeEnvironment.DEV:
    LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "30"))
else:
    LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "5"))
