"""
Tickets Module
==============

Bounded Context for ticket routing operations.

Responsibilities:
- Best-effort bulk assignment, unassignment, status and priority changes
- Cached ticket listing
"""
