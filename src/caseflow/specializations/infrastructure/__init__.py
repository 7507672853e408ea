"""
Specializations Infrastructure Layer
====================================

Backing API adapter implementing ISpecializationGateway.
"""

from caseflow.specializations.infrastructure.external import (
    HttpSpecializationGateway,
    record_from_payload,
)

__all__ = [
    "HttpSpecializationGateway",
    "record_from_payload",
]
