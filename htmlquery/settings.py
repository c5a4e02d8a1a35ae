"""Project settings for htmlquery.

Values below are the defaults used by the library, the host scalar
functions and the CLI.  The ones that make sense per deployment can be
overridden through ``HTMLQUERY_*`` environment variables.
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Query defaults
# ---------------------------------------------------------------------------
# Selector used when the caller does not give one (the document element).
DEFAULT_SELECTOR = ":root"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = os.environ.get("HTMLQUERY_LOG_LEVEL", "WARNING").upper()

# ---------------------------------------------------------------------------
# Batch execution (host-side fan-out over many documents)
# ---------------------------------------------------------------------------
try:
    MAX_WORKERS = max(1, int(os.environ.get("HTMLQUERY_MAX_WORKERS", "8")))
except ValueError:
    MAX_WORKERS = 8

# "include" keeps an empty result for a failed row, "skip" drops the row,
# "raise" re-raises the first failure.
BATCH_ON_ERROR = "include"

# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------
# How much of a failing text is kept on JsonDecodeError / in warnings.
ERROR_SNIPPET_CHARS = 200
