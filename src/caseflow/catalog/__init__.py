"""
Help Catalog Module
===================

Bounded Context for near-static help content.

Responsibilities:
- Read help categories and FAQs through the shared stale-tolerant cache
- Invalidate only the help namespace when catalog content changes
"""
