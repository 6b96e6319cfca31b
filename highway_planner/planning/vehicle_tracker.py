"""Nearest-vehicle queries per lane."""

from typing import Iterable, Optional

from loguru import logger

from ..core.data_structures import TrackedVehicle, VehicleObservation
from ..core.waypoint_map import WaypointMap


class VehicleTracker:
    """Finds the closest sensed vehicle ahead of or behind the ego vehicle.

    Sensed vehicles are extrapolated at constant speed over the part of the
    previous trajectory that is still to be driven, so their positions line
    up with the point the new trajectory starts from.

    Args:
        waypoint_map: Track used for lane bands and arc length wrapping
        dt: Duration of one actuator tick [s]
    """

    def __init__(self, waypoint_map: WaypointMap, dt: float = 0.02):
        self.map = waypoint_map
        self.dt = dt

    def predicted_distance(
        self,
        vehicle: VehicleObservation,
        ego_s: float,
        retained_length: int,
    ) -> float:
        """Signed arc distance from ``ego_s`` to the extrapolated vehicle."""
        predicted_s = vehicle.s + retained_length * self.dt * vehicle.speed
        return self.map.wrap_distance(predicted_s - ego_s)

    def find_vehicle(
        self,
        ego_s: float,
        lane: int,
        vehicles: Iterable[VehicleObservation],
        retained_length: int,
        buffer: float,
    ) -> Optional[TrackedVehicle]:
        """Closest vehicle in ``lane`` within ``buffer``.

        Args:
            ego_s: Ego arc length [m]
            lane: Lane to search
            vehicles: Sensed vehicles
            retained_length: Number of retained path points
            buffer: Search distance, positive looks ahead, negative behind [m]

        Returns:
            Closest vehicle with its predicted distance, or None
        """
        found = []
        for vehicle in vehicles:
            if not self.map.in_lane(vehicle.d, lane):
                continue
            distance = self.predicted_distance(vehicle, ego_s, retained_length)
            if buffer >= 0 and 0 < distance < buffer:
                found.append(TrackedVehicle(vehicle, distance))
            elif buffer < 0 and buffer < distance < 0:
                found.append(TrackedVehicle(vehicle, distance))

        if not found:
            return None

        closest = min(found, key=lambda tracked: abs(tracked.distance))
        logger.debug(
            f"Lane {lane} buffer {buffer:+.1f}m: vehicle {closest.vehicle.id} "
            f"at {closest.distance:+.1f}m ({len(found)} in range)"
        )
        return closest

    def find_ahead(self, ego_s, lane, vehicles, retained_length, buffer) -> Optional[TrackedVehicle]:
        """Closest vehicle ahead within ``buffer`` (> 0)."""
        return self.find_vehicle(ego_s, lane, vehicles, retained_length, abs(buffer))

    def find_behind(self, ego_s, lane, vehicles, retained_length, buffer) -> Optional[TrackedVehicle]:
        """Closest vehicle behind within ``buffer`` (sign ignored)."""
        return self.find_vehicle(ego_s, lane, vehicles, retained_length, -abs(buffer))
