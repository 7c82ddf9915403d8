"""Power plant records for the grid recovery simulation.

A :class:`PowerPlant` holds the static description of one generation unit
(location, capacity, family constants) plus the two pieces of run state the
recovery engine rewrites every simulated minute: its operational state and its
assigned output.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Optional

from ..constants import DEFAULT_EFFICIENCY
from ..exceptions import ConfigurationError
from .plant_families import FamilySpec, FuelType, PlantFamily, PlantState, get_family_spec


def _as_finite_float(value, message: str, plant_name) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{message} Got {value!r} for plant '{plant_name}'.") from None
    if not math.isfinite(number):
        raise ConfigurationError(f"{message} Got {value!r} for plant '{plant_name}'.")
    return number


def _check_range(value, lower, upper, message: str, plant_name) -> float:
    number = _as_finite_float(value, message, plant_name)
    if number < lower or (upper is not None and number > upper):
        raise ConfigurationError(f"{message} Got {value!r} for plant '{plant_name}'.")
    return number


def _check_text(value, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{message} Got {value!r}.")
    return value.strip()


@dataclass(eq=False)
class PowerPlant:
    """One generation unit of the fleet.

    Static attributes are validated in ``__post_init__`` and cannot be
    reassigned afterwards. Only ``state`` and ``assigned_output_mw`` change,
    and only through the methods below.

    Attributes
    ----------
    id : int
        Identity issued by the owning engine, in registration order.
    family : PlantFamily
        Technology family; fixes the stability, restart time and window.
    name, city : str
        Non-blank, stored stripped.
    latitude, longitude : float
        Degrees, in [-90, 90] and [-180, 180].
    max_capacity_mw : float
        Nameplate capacity (MW), >= 0.
    efficiency : float
        In [0, 1]. Scales the capacity of renewable families only; nuclear and
        thermal plants always report 1.0.
    stability, restart_time
        Family constants. Only FUEL_GAS plants may override them.
    """
    id: int
    family: PlantFamily
    name: str
    latitude: float
    longitude: float
    city: str
    max_capacity_mw: float
    efficiency: float = DEFAULT_EFFICIENCY
    stability: Optional[float] = None
    restart_time: Optional[timedelta] = None

    icon: str = field(init=False)
    availability_start: time = field(init=False)
    availability_end: time = field(init=False)
    fuel: Optional[FuelType] = field(init=False)
    state: PlantState = field(init=False, default=PlantState.UNAVAILABLE)
    assigned_output_mw: float = field(init=False, default=0.0)

    _STATIC_FIELDS = frozenset({
        "id", "family", "name", "latitude", "longitude", "city", "max_capacity_mw",
        "efficiency", "stability", "restart_time", "icon", "availability_start",
        "availability_end", "fuel",
    })

    def __post_init__(self):
        self.family = PlantFamily.from_kind(self.family)
        spec = get_family_spec(self.family)

        self.name = _check_text(self.name, ConfigurationError.ERROR_NAME)
        self.latitude = _check_range(self.latitude, -90, 90, ConfigurationError.ERROR_LATITUDE, self.name)
        self.longitude = _check_range(self.longitude, -180, 180, ConfigurationError.ERROR_LONGITUDE, self.name)
        self.city = _check_text(self.city, ConfigurationError.ERROR_CITY)
        self.max_capacity_mw = _check_range(self.max_capacity_mw, 0, None, ConfigurationError.ERROR_CAPACITY, self.name)

        if spec.uses_efficiency:
            self.efficiency = _check_range(self.efficiency, 0, 1, ConfigurationError.ERROR_EFFICIENCY, self.name)
        else:
            self.efficiency = DEFAULT_EFFICIENCY

        if (self.stability is not None or self.restart_time is not None) and not spec.configurable:
            raise ConfigurationError(
                f"{ConfigurationError.ERROR_FIXED_FAMILY_OVERRIDE} Got a {self.family.value} plant '{self.name}'."
            )
        stability = spec.stability if self.stability is None else self.stability
        self.stability = _check_range(stability, 0, 1, ConfigurationError.ERROR_STABILITY, self.name)

        restart_time = spec.restart_time if self.restart_time is None else self.restart_time
        if not isinstance(restart_time, timedelta) or restart_time < timedelta(0):
            raise ConfigurationError(
                f"{ConfigurationError.ERROR_RESTART_TIME} Got {restart_time!r} for plant '{self.name}'."
            )
        self.restart_time = restart_time

        if spec.availability_start > spec.availability_end:
            raise ConfigurationError(ConfigurationError.ERROR_AVAILABILITY_WINDOW)
        self.icon = spec.icon
        self.availability_start = spec.availability_start
        self.availability_end = spec.availability_end
        self.fuel = spec.fuel

        object.__setattr__(self, "_sealed", True)

    def __setattr__(self, name, value):
        if name in self._STATIC_FIELDS and getattr(self, "_sealed", False):
            raise AttributeError(f"Static attribute '{name}' of plant '{self.name}' cannot be modified.")
        super().__setattr__(name, value)

    # ----------------------------------------------------------------------------------
    # Family accessors
    # ----------------------------------------------------------------------------------

    @property
    def spec(self) -> FamilySpec:
        return get_family_spec(self.family)

    @property
    def type_label(self) -> str:
        """Display label of the family, e.g. ``"Combined cycle"``."""
        return self.spec.label

    @property
    def is_renewable(self) -> bool:
        return self.spec.is_renewable

    @property
    def is_nuclear(self) -> bool:
        return self.spec.is_nuclear

    @property
    def is_thermal(self) -> bool:
        return self.spec.is_thermal

    # ----------------------------------------------------------------------------------
    # Availability and output
    # ----------------------------------------------------------------------------------

    def is_available(self, blackout_time: datetime, current_time: datetime) -> bool:
        """
        Checks whether the plant may generate at ``current_time``.

        The time of day must lie inside the availability window (both ends
        included) and the restart time must have fully elapsed. The instant
        ``blackout_time + restart_time`` itself still counts as restarting.

        Args:
            blackout_time (datetime): Instant of the total grid loss.
            current_time (datetime): Simulated instant being evaluated.

        Returns:
            bool: True if the plant can be dispatched at this instant.
        """
        time_of_day = current_time.time()
        in_window = self.availability_start <= time_of_day <= self.availability_end
        has_restarted = current_time > blackout_time + self.restart_time
        return in_window and has_restarted

    def max_power_output(self) -> float:
        """Maximum deliverable output (MW)."""
        if self.spec.uses_efficiency:
            return self.max_capacity_mw * self.efficiency
        return self.max_capacity_mw

    def assign_power_output(self, power_demand_mw: float) -> float:
        """
        Sets the plant's output to cover as much of ``power_demand_mw`` as it can.

        The assigned output becomes ``min(power_demand_mw, max_power_output())``.
        The return value is the increase over the previously assigned output,
        never negative, so the caller can subtract it from the demand still to
        be covered. Unavailable plants ignore the request.

        Args:
            power_demand_mw (float): Requested output (MW), >= 0.

        Returns:
            float: Output added by this call (MW).

        Raises:
            ConfigurationError: If the requested output is negative.
        """
        if power_demand_mw < 0:
            raise ConfigurationError(
                f"{ConfigurationError.ERROR_NEGATIVE_POWER_ASSIGNMENT} Got {power_demand_mw} for plant '{self.name}'."
            )
        if self.state == PlantState.UNAVAILABLE:
            return 0.0

        old_output = self.assigned_output_mw
        self.assigned_output_mw = min(power_demand_mw, self.max_power_output())
        added = self.assigned_output_mw - old_output
        return added if added > 0 else 0.0

    def simulate_power_output_mw(self) -> float:
        """Output actually delivered to the grid (MW): the assignment if ONLINE, else 0."""
        if self.state == PlantState.ONLINE:
            return self.assigned_output_mw
        return 0.0

    # ----------------------------------------------------------------------------------
    # Per-minute state transitions
    # ----------------------------------------------------------------------------------

    def reset_for_minute(self, blackout_time: datetime, current_time: datetime):
        """Recomputes IDLE/UNAVAILABLE for a new minute and clears the assignment."""
        self.state = PlantState.IDLE if self.is_available(blackout_time, current_time) else PlantState.UNAVAILABLE
        self.assigned_output_mw = 0.0

    def bring_online(self):
        self.state = PlantState.ONLINE

    def disconnect(self) -> float:
        """
        Takes the plant off the grid for the rest of the minute.

        Returns:
            float: The output (MW) the plant was delivering before disconnection.
        """
        disconnected_output = self.simulate_power_output_mw()
        self.assigned_output_mw = 0.0
        self.state = PlantState.IDLE
        return disconnected_output

    # ----------------------------------------------------------------------------------
    # Introspection
    # ----------------------------------------------------------------------------------

    def to_dict(self) -> dict:
        """Plant record for presentation layers (map markers, tables, JSON)."""
        record = {
            "id": self.id,
            "name": self.name,
            "type": self.type_label,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "city": self.city,
            "max_capacity_mw": self.max_capacity_mw,
            "assigned_output_mw": self.assigned_output_mw,
            "icon": self.icon,
            "state": self.state.value,
        }
        if self.is_thermal:
            record["fuel_type"] = str(self.fuel)
        else:
            record["efficiency"] = self.efficiency
        return record
