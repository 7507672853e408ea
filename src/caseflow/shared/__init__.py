"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts
(specializations, tickets, catalog).

DO NOT add business logic from a bounded context to the shared kernel.
"""
