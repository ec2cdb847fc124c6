"""
Utils Module - Infrastructure Utilities and Support Functions
==============================================================

Modules:
    logger: Colored console logging plus JSON error logs with request context
    request_context: ContextVar-based request ID and agent identity
    cache: Async TTL cache with an injectable clock
    metrics: Prometheus counters and histograms
    client_factory: httpx.AsyncClient construction
    http_logger: httpx event hooks for request/response debugging
    json_utils: JSON serialization and extraction from model output
    text_utils: Title casing, control-character cleanup and TOON rendering
"""
