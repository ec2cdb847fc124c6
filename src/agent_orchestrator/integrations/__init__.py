"""
Integrations Module - External System Integrations
===================================================

Modules:
    transport: Deadline-scoped provider calls, 429 retries, HTTP error classification
    preload: Concurrent context preloading with a TTL result cache
"""
