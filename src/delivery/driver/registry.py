"""Driver registry — nearest-driver search and the driver claim.

Drivers are matched on approval, availability and vehicle, then ranked by
great-circle distance from the point the leg starts at.

Every order competes for the same drivers, so driver rows never ride on the
caller's unit of work. They live in the ``dispatch`` database; reads come
straight from the store and writes are committed to it at once, one at a
time under a process-wide lock. Taking a driver is then a compare-and-swap
on ``is_available``: the row is re-read, checked and written before the lock
is let go, and every write is checked against the stored ``_version``.
"""

import threading
from dataclasses import dataclass

import structlog

from delivery.domain import delivery
from delivery.driver.driver import Driver, DriverStatus
from delivery.geo import haversine_km

logger = structlog.get_logger(__name__)

_dispatch_lock = threading.RLock()


@dataclass(frozen=True)
class DriverMatch:
    """A dispatchable driver and how far they are from the pickup point."""

    driver: Driver
    distance_km: float


@delivery.repository(part_of=Driver)
class DriverRepository:
    def _store(self):
        # No unit of work opens a session on ``dispatch``, so every call commits on its own
        return self._dao.outside_uow()

    def get(self, identifier) -> Driver:
        return self._store().get(identifier)

    def add(self, driver: Driver) -> Driver:
        with _dispatch_lock:
            self._store().save(driver)
        return driver

    def find_nearest_available(
        self,
        latitude: float,
        longitude: float,
        radius_km: float,
        vehicle_type: str | None = None,
        is_delivering: bool = False,
        exclude_ids=(),
    ) -> list[DriverMatch]:
        """Return approved, available drivers within ``radius_km``, nearest first.

        ``is_delivering`` selects the pool: idle drivers for a first assignment,
        drivers already out on the road for a reassignment.
        """
        excluded = {str(driver_id) for driver_id in exclude_ids}
        candidates = (
            self._store()
            .query.filter(
                status=DriverStatus.APPROVED.value,
                is_available=True,
                is_delivering=is_delivering,
            )
            .limit(None)
            .all()
            .items
        )

        matches = []
        for driver in candidates:
            if str(driver.id) in excluded:
                continue
            if vehicle_type and driver.vehicle_type != vehicle_type:
                continue
            if driver.location is None:
                continue
            distance = haversine_km(
                latitude,
                longitude,
                driver.location.latitude,
                driver.location.longitude,
            )
            if distance <= radius_km:
                matches.append(DriverMatch(driver=driver, distance_km=distance))

        matches.sort(key=lambda match: match.distance_km)
        return matches

    def claim(self, driver_id: str) -> Driver:
        """Atomically mark the driver as taken.

        Raises DriverUnavailableError when the driver was claimed since it was found.
        """
        with _dispatch_lock:
            driver = self.get(driver_id)
            driver.claim()
            self.add(driver)
        logger.info("Driver claimed", driver_id=str(driver_id))
        return driver

    def release(self, driver_id: str) -> Driver:
        with _dispatch_lock:
            driver = self.get(driver_id)
            driver.release()
            self.add(driver)
        logger.info("Driver released", driver_id=str(driver_id))
        return driver

    def return_to_pool(self, driver_id: str) -> Driver:
        with _dispatch_lock:
            driver = self.get(driver_id)
            driver.return_to_pool()
            self.add(driver)
        logger.info("Driver returned to the pool", driver_id=str(driver_id))
        return driver
