"""
Infrastructure Layer
=====================

Low-level technical concerns shared by every bounded context:
- Stale-tolerant cache, request coalescing and the cached read path
- Cache cleanup scheduling and policy hot-reload
- Backing API client
- Logging setup
- Notification sinks
"""
