from __future__ import annotations

import math

# raiderpal/constants.py

CACHE = {
    "DEFAULT_TTL": 60 * 60,  # 1 hour
    "LONG_TTL": math.inf,  # version-gated only
    "VERSION_TTL": 60,  # 1 minute
    "MODAL_TTL": 15 * 60,  # 15 minutes
    "MAX_ENTRIES": 1000,  # oldest 20% evicted past this
}

QUERY = {
    "MAX_ITEMS_PER_PAGE": 100,
}

# Cache-Control max-age per TTL class (seconds)
HTTP_MAX_AGE = {
    "DEFAULT": 300,
    "LONG": 3600,
    "VERSION": 60,
    "MODAL": 900,
}

VERSION_ROW_ID = "global"

ITEM_ID_PATTERN = r"^[a-zA-Z0-9_-]+$"
ITEM_ID_MAX_LEN = 255
SEARCH_PATTERN = r"^[\w\s\-'.]*$"
