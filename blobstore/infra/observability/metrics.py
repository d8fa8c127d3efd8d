import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import Counter, Histogram

# Low-cardinality labels only: store backend and operation kind, never keys.
OPERATIONS = Counter(
    "blobstore_operations_total",
    "Total blob store operations",
    ["backend", "operation", "outcome"],
)

LATENCY = Histogram(
    "blobstore_operation_duration_seconds",
    "Blob store operation latency in seconds",
    ["backend", "operation"],
)

MULTIPART_PARTS = Counter(
    "blobstore_multipart_parts_total",
    "Parts uploaded or copied through multipart sessions",
    ["kind"],
)

MULTIPART_ABORTS = Counter(
    "blobstore_multipart_aborts_total",
    "Multipart sessions aborted",
    ["outcome"],
)

UPLOADED_BYTES = Counter(
    "blobstore_uploaded_bytes_total",
    "Bytes sent to the object store by blob writers",
    ["mode"],
)

DELETE_FAILURES = Counter(
    "blobstore_delete_failures_total",
    "Keys a bulk delete reported as not deleted",
)


@contextmanager
def track_operation(backend: str, operation: str) -> Iterator[None]:
    """Count and time one store operation, labelling it by outcome."""
    start = time.perf_counter()
    outcome = "error"
    try:
        yield
        outcome = "success"
    finally:
        OPERATIONS.labels(backend, operation, outcome).inc()
        LATENCY.labels(backend, operation).observe(time.perf_counter() - start)
