"""
Specializations Module
======================

Bounded Context for workload-aware assignment.

Responsibilities:
- Score each counselor specialization for routing (AssignmentScorer)
- Aggregate workload over the live snapshot (WorkloadAggregator)
- Own the record snapshot and its cached fetches (SpecializationRegistry)
- Apply availability changes atomically (AvailabilityCoordinator)
- Admin API under /assignment
"""
