"""
Caseflow
========

Client-resident data layer for a support ticketing platform.

Bounded contexts:
- specializations: assignment scoring, workload aggregation, registry
- tickets: best-effort bulk ticket mutations
- catalog: near-static help catalog reads

All read-heavy contexts share one stale-tolerant cache.
"""

__version__ = "1.0.0"
