"""
Availability Coordinator
========================

Batched availability toggles applied to the registry as a single
snapshot-to-snapshot transform.

Order of a call:
1. Validate every update (no request leaves on bad input)
2. Check every id exists in the current snapshot
3. Check the caller may change those records
4. One backing call for the whole batch
5. One commit over the snapshot current at that moment
6. Invalidate the specializations, workload and staff namespaces

If the backing call fails, step 5 never runs and the registry keeps its
previous snapshot.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from caseflow.config import UserRole
from caseflow.core import (
    Actor,
    ApplicationException,
    PermissionDeniedException,
    ResourceNotFoundException,
    ValidationException,
    parse_model,
)
from caseflow.shared.infrastructure.logging import get_logger
from caseflow.shared.infrastructure.notifications import Notifier
from caseflow.specializations.application.dto import AvailabilityUpdate, OperationResult
from caseflow.specializations.application.services import (
    ISpecializationGateway,
    SpecializationRegistry,
)
from caseflow.specializations.application.state import RegistryState, apply_availability, find_record

logger = get_logger(__name__)

UpdateInput = Union[AvailabilityUpdate, Mapping[str, Any]]

FAILURE_TITLE = "Failed to update availability"


class AvailabilityCoordinator:
    """Atomic availability changes on a SpecializationRegistry."""

    def __init__(
        self,
        registry: SpecializationRegistry,
        gateway: ISpecializationGateway,
        notifier: Notifier,
        actor: Optional[Actor] = None
    ):
        self._registry = registry
        self._gateway = gateway
        self._notifier = notifier
        self._actor = actor or Actor.system()

    async def set_availability(
        self,
        updates: Iterable[UpdateInput],
        actor: Optional[Actor] = None
    ) -> OperationResult:
        """
        Set ``is_available`` on one or more records.

        Later updates for the same id win over earlier ones.

        Raises:
            ValidationException: Malformed or empty updates
            ResourceNotFoundException: An id is not in the registry snapshot
            PermissionDeniedException: Caller may not change these records
            ExternalServiceException: Backing call failed; nothing was applied
        """
        actor = actor or self._actor
        try:
            availability = self._validate(updates)
            self._check_exists(self._registry.state, availability)
            self._authorize(actor, self._registry.state, availability)

            await self._gateway.update_availability([
                AvailabilityUpdate(id=record_id, is_available=flag)
                for record_id, flag in availability.items()
            ])
        except ApplicationException as exc:
            self._registry.report_failure("availability", exc, FAILURE_TITLE)
            raise

        self._registry.apply(apply_availability, availability)
        self._registry.clear_error("availability")
        self._registry.invalidate_cache()

        count = len(availability)
        message = (
            "Availability updated successfully"
            if count == 1
            else f"Availability updated for {count} specializations"
        )
        self._notifier.success(message)
        logger.info(
            "Availability updated",
            extra={"count": count, "ids": sorted(availability), "actor_role": actor.role.value}
        )
        return OperationResult(message=message, updated_count=count)

    async def set_record_availability(
        self,
        specialization_id: int,
        is_available: bool,
        actor: Optional[Actor] = None
    ) -> OperationResult:
        return await self.set_availability([{"id": specialization_id, "is_available": is_available}], actor)

    async def toggle(self, specialization_id: int, actor: Optional[Actor] = None) -> OperationResult:
        """Flip one record's availability based on the current snapshot."""
        record = self._registry.get(specialization_id)
        if record is None:
            exc = ResourceNotFoundException("Specialization", str(specialization_id))
            self._registry.report_failure("availability", exc, FAILURE_TITLE)
            raise exc
        return await self.set_record_availability(specialization_id, not record.is_available, actor)

    # ========== Checks ==========

    @staticmethod
    def _validate(updates: Iterable[UpdateInput]) -> Dict[int, bool]:
        errors: List[str] = []
        availability: Dict[int, bool] = {}
        for index, raw in enumerate(updates):
            try:
                update = parse_model(AvailabilityUpdate, raw)
            except ValidationException as e:
                errors.extend(f"updates[{index}] {message}" for message in e.errors)
                continue
            availability[update.id] = update.is_available

        if errors:
            raise ValidationException("Invalid availability updates", errors=errors)
        if not availability:
            raise ValidationException("No availability updates", errors=["Select at least one specialization"])
        return availability

    @staticmethod
    def _check_exists(state: RegistryState, availability: Mapping[int, bool]) -> None:
        missing = [record_id for record_id in availability if find_record(state, record_id) is None]
        if missing:
            raise ResourceNotFoundException("Specialization", ", ".join(str(i) for i in missing))

    @staticmethod
    def _authorize(actor: Actor, state: RegistryState, availability: Mapping[int, bool]) -> None:
        """Admins may change any record; counselors only their own."""
        if actor.is_admin:
            return
        if actor.role == UserRole.COUNSELOR and actor.user_id is not None:
            owned = all(
                find_record(state, record_id).counselor_id == actor.user_id
                for record_id in availability
            )
            if owned:
                return
        raise PermissionDeniedException("update availability", actor.role.value)
