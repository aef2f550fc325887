from __future__ import annotations

import re
from prometheus_client import Counter, Histogram


def normalize_path(path: str) -> str:
    """Reduce high-cardinality paths for metrics labels."""
    p = path or "/"

    # long hex (content hashes)
    p = re.sub(r"/[0-9a-fA-F]{16,}", "/:hex", p)
    # ints
    p = re.sub(r"/\d+", "/:id", p)

    # Catalog model names
    p = re.sub(r"^(/api/v1/models)/[^/]+/compute$", r"\1/:name/compute", p)

    return p


HTTP_REQUESTS_TOTAL = Counter(
    "cengine_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "cengine_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
