"""
Specializations Application Layer
=================================

Contains:
- Services: SpecializationRegistry (state container), AvailabilityCoordinator
- State: RegistryState and its pure transforms
- DTOs: filters, requests and responses

This layer depends on the domain layer and gateway interfaces,
but not on concrete infrastructure implementations.
"""

from caseflow.specializations.application.dto import (
    AvailabilityUpdate,
    CreateSpecializationRequest,
    ExportResult,
    OperationResult,
    SpecializationFilters,
    UpdateSpecializationRequest,
    WorkloadStats,
)
from caseflow.specializations.application.state import RegistryState
from caseflow.specializations.application.views import RecordPage, visible_records
from caseflow.specializations.application.services import (
    ISpecializationGateway,
    SpecializationRegistry,
)
from caseflow.specializations.application.availability import AvailabilityCoordinator

__all__ = [
    # DTOs
    "AvailabilityUpdate",
    "CreateSpecializationRequest",
    "ExportResult",
    "OperationResult",
    "SpecializationFilters",
    "UpdateSpecializationRequest",
    "WorkloadStats",
    # State
    "RegistryState",
    "RecordPage",
    "visible_records",
    # Services
    "SpecializationRegistry",
    "AvailabilityCoordinator",
    # Gateway Interfaces
    "ISpecializationGateway",
]
