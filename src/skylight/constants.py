"""
Constant variables used throughout source code
"""

import os

VERSION = "0.1.0"

# Wire protocol
REPORT_CONTENT_TYPE = "application/x-skylight-report-v1"
REPORT_PROTOCOL_VERSION = 1
REPORT_PATH = "/report"
USER_AGENT = f"skylight-python/{VERSION}"

# Trace defaults
DEFAULT_ENDPOINT = "Unknown"
DEFAULT_METHOD_CATEGORY = "app.method"
GC_CATEGORY = "noise.gc"
TICKS_PER_SECOND = 1_000_000

# Agent
DEFAULT_STRATEGY = os.getenv("SKYLIGHT_AGENT_STRATEGY", "embedded")
DEFAULT_INTERVAL = float(os.getenv("SKYLIGHT_AGENT_INTERVAL", 5))
DEFAULT_MAX_QUEUE_SIZE = int(os.getenv("SKYLIGHT_AGENT_MAX_QUEUE_SIZE", 1000))
DEFAULT_SOCKFILE_PATH = os.getenv("SKYLIGHT_AGENT_SOCKFILE_PATH", "/tmp")
SOCKFILE_NAME = "skylight-{pid}.sock"

# Report
DEFAULT_REPORT_HOST = os.getenv("SKYLIGHT_REPORT_HOST", "agent.skylight.io")
DEFAULT_REPORT_PORT = int(os.getenv("SKYLIGHT_REPORT_PORT", 443))
DEFAULT_REPORT_TIMEOUT = 15.0
DEFAULT_REPORT_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.5
RETRY_STATUS_CODES = [429, 500, 502, 503, 504]
WORKER_CONFIG_ENV = "SKYLIGHT_WORKER_CONFIG"
