"""
WarehouseService -- warehouse and bin location bootstrap.

Responsibility:
    Creates warehouses together with their receiving location, and further
    bin locations.  A warehouse without a receiving location cannot take
    stock, so the two are created in one flush.

Invariants enforced:
    - Warehouse codes are unique.
    - Location addresses (zone-aisle-rack-shelf-bin) are unique within a
      warehouse.
    - Exactly one receiving location per warehouse.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.exceptions import DuplicateCodeError, InvalidRequestError, WarehouseNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.audit_log import AuditAction
from inventory_kernel.models.warehouse import Warehouse, WarehouseLocation, WarehouseStatus
from inventory_kernel.services.audit_trail import AuditTrail
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.order_base import as_uuid

logger = get_logger("services.warehouse")


@dataclass(frozen=True)
class LocationAddress:
    zone: str
    aisle: str
    rack: str
    shelf: str
    bin: str

    @property
    def code(self) -> str:
        return "-".join((self.zone, self.aisle, self.rack, self.shelf, self.bin))

    @classmethod
    def parse(cls, code: str) -> "LocationAddress":
        parts = [p.strip() for p in str(code).split("-")]
        if len(parts) != 5 or not all(parts):
            raise InvalidRequestError(
                "location_code", f"expected zone-aisle-rack-shelf-bin, got {code!r}"
            )
        return cls(*parts)


DEFAULT_RECEIVING_ADDRESS = LocationAddress("DOCK", "00", "00", "00", "00")


class WarehouseService(BaseService[Warehouse]):
    """Creates warehouses and their locations."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrail | None = None,
        receiving_address: LocationAddress = DEFAULT_RECEIVING_ADDRESS,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit if audit is not None else AuditTrail(self._clock)
        self._receiving_address = receiving_address

    def get_warehouse(self, warehouse_id) -> Warehouse:
        warehouse = self.session.get(Warehouse, as_uuid(warehouse_id, "warehouse_id"))
        if warehouse is None:
            raise WarehouseNotFoundError(str(warehouse_id))
        return warehouse

    def find_by_code(self, code: str) -> Warehouse | None:
        return self.session.execute(
            select(Warehouse).where(Warehouse.code == code)
        ).scalar_one_or_none()

    def create_warehouse(self, code: str, name: str, actor_id: UUID,
                         address: str | None = None) -> Warehouse:
        code = (code or "").strip()
        if not code:
            raise InvalidRequestError("code", "warehouse code is required")
        if self.find_by_code(code) is not None:
            raise DuplicateCodeError("Warehouse", code)

        warehouse = Warehouse(
            code=code,
            name=name,
            address=address,
            status=WarehouseStatus.ACTIVE.value,
            created_by_id=actor_id,
        )
        self.session.add(warehouse)
        self.session.flush()
        receiving = self._new_location(warehouse, self._receiving_address, actor_id, is_receiving=True)

        logger.info(
            "warehouse_created",
            extra={"warehouse_code": code, "receiving_location": receiving.code},
        )
        self._audit.record(
            actor_id, AuditAction.WAREHOUSE_CREATED, "Warehouse", warehouse.id,
            after={"code": code, "name": name, "receiving_location_id": str(receiving.id)},
        )
        return warehouse

    def add_location(self, warehouse_id, address: LocationAddress | str,
                     actor_id: UUID) -> WarehouseLocation:
        warehouse = self.get_warehouse(warehouse_id)
        if isinstance(address, str):
            address = LocationAddress.parse(address)
        location = self._new_location(warehouse, address, actor_id)
        self._audit.record(
            actor_id, AuditAction.LOCATION_CREATED, "WarehouseLocation", location.id,
            after={"warehouse_id": str(warehouse.id), "code": location.code},
        )
        return location

    def locations(self, warehouse_id) -> list[WarehouseLocation]:
        warehouse = self.get_warehouse(warehouse_id)
        return list(warehouse.locations)

    def _new_location(self, warehouse: Warehouse, address: LocationAddress,
                      actor_id: UUID, is_receiving: bool = False) -> WarehouseLocation:
        taken = self.session.execute(
            select(WarehouseLocation.id).where(
                WarehouseLocation.warehouse_id == warehouse.id,
                WarehouseLocation.zone == address.zone,
                WarehouseLocation.aisle == address.aisle,
                WarehouseLocation.rack == address.rack,
                WarehouseLocation.shelf == address.shelf,
                WarehouseLocation.bin == address.bin,
            )
        ).first()
        if taken is not None:
            raise DuplicateCodeError("WarehouseLocation", f"{warehouse.code}/{address.code}")

        location = WarehouseLocation(
            warehouse_id=warehouse.id,
            zone=address.zone,
            aisle=address.aisle,
            rack=address.rack,
            shelf=address.shelf,
            bin=address.bin,
            is_receiving=is_receiving,
            created_by_id=actor_id,
        )
        warehouse.locations.append(location)
        self.session.flush()
        logger.info(
            "location_created",
            extra={"warehouse_code": warehouse.code, "location_code": location.code},
        )
        return location
