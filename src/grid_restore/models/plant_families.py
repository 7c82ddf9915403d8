"""Plant family catalogue for the grid recovery simulation.

The fleet is made of a closed set of eight plant families. They only differ in
a handful of constants (stability, restart time, availability window, icon,
fuel) and in whether the efficiency factor scales the nameplate capacity. All
of that lives in the ``FAMILY_SPECS`` table; :class:`PowerPlant` looks its
family up here instead of subclassing per technology.

Families are grouped in three categories, which is also the dispatch priority
of the recovery algorithm: renewables first, then nuclear, then thermal.
"""

from dataclasses import dataclass
from datetime import time, timedelta
from enum import Enum
from typing import Optional

from ..constants import FULL_DAY_START, FULL_DAY_END
from ..exceptions import ConfigurationError


class PlantCategory(str, Enum):
    RENEWABLE = "renewable"
    NUCLEAR = "nuclear"
    THERMAL = "thermal"


class FuelType(Enum):
    COAL = "Coal"
    NATURAL_GAS = "Natural gas"
    BIOMASS = "Biomass"
    FUEL_GAS = "Fuel gas"

    def __str__(self):
        return self.value


class PlantState(str, Enum):
    ONLINE = "ONLINE"
    IDLE = "IDLE"
    UNAVAILABLE = "UNAVAILABLE"


class PlantFamily(str, Enum):
    NUCLEAR = "NUCLEAR"
    COAL = "COAL"
    COMBINED_CYCLE = "COMBINED_CYCLE"
    BIOMASS = "BIOMASS"
    FUEL_GAS = "FUEL_GAS"
    HYDRO = "HYDRO"
    WIND = "WIND"
    SOLAR = "SOLAR"

    @classmethod
    def from_kind(cls, kind) -> "PlantFamily":
        """
        Resolves a family from its kind string (e.g. ``"HYDRO"``, ``" solar "``).

        Args:
            kind (str or PlantFamily): Family kind, matched case-insensitively
                after stripping surrounding blanks.

        Returns:
            PlantFamily: The matching family.

        Raises:
            ConfigurationError: If the kind is None or not one of the eight families.
        """
        if isinstance(kind, PlantFamily):
            return kind
        if not isinstance(kind, str) or not kind.strip():
            raise ConfigurationError(f"{ConfigurationError.ERROR_INVALID_POWER_PLANT_TYPE} Got {kind!r}.")
        try:
            return cls(kind.strip().upper())
        except ValueError:
            valid = [family.value for family in cls]
            raise ConfigurationError(
                f"{ConfigurationError.ERROR_INVALID_POWER_PLANT_TYPE} Got {kind!r}, valid options are: {valid}"
            ) from None


@dataclass(frozen=True)
class FamilySpec:
    """Static constants shared by every plant of one family."""
    label: str
    category: PlantCategory
    stability: float
    restart_time: timedelta
    icon: str
    availability_start: time = FULL_DAY_START
    availability_end: time = FULL_DAY_END
    fuel: Optional[FuelType] = None
    configurable: bool = False

    @property
    def is_renewable(self) -> bool:
        return self.category == PlantCategory.RENEWABLE

    @property
    def is_nuclear(self) -> bool:
        return self.category == PlantCategory.NUCLEAR

    @property
    def is_thermal(self) -> bool:
        return self.category == PlantCategory.THERMAL

    @property
    def uses_efficiency(self) -> bool:
        """Only renewable output is scaled by the efficiency factor."""
        return self.is_renewable


FAMILY_SPECS = {
    PlantFamily.NUCLEAR: FamilySpec(
        label="Nuclear", category=PlantCategory.NUCLEAR, stability=1.0,
        restart_time=timedelta(days=1), icon="nuclear.png",
    ),
    PlantFamily.COAL: FamilySpec(
        label="Coal", category=PlantCategory.THERMAL, stability=0.9,
        restart_time=timedelta(hours=8), icon="coal.png", fuel=FuelType.COAL,
    ),
    PlantFamily.COMBINED_CYCLE: FamilySpec(
        label="Combined cycle", category=PlantCategory.THERMAL, stability=0.7,
        restart_time=timedelta(hours=2), icon="combined_cycle.png", fuel=FuelType.NATURAL_GAS,
    ),
    PlantFamily.BIOMASS: FamilySpec(
        label="Biomass", category=PlantCategory.THERMAL, stability=0.5,
        restart_time=timedelta(hours=3), icon="biomass.png", fuel=FuelType.BIOMASS,
    ),
    # Stability and restart time are defaults, overridable per plant
    PlantFamily.FUEL_GAS: FamilySpec(
        label="Fuel gas", category=PlantCategory.THERMAL, stability=0.6,
        restart_time=timedelta(hours=1), icon="fuel_gas.png", fuel=FuelType.FUEL_GAS,
        configurable=True,
    ),
    PlantFamily.HYDRO: FamilySpec(
        label="Hydroelectric", category=PlantCategory.RENEWABLE, stability=0.8,
        restart_time=timedelta(minutes=3), icon="hydro.png",
    ),
    PlantFamily.WIND: FamilySpec(
        label="Wind", category=PlantCategory.RENEWABLE, stability=0.2,
        restart_time=timedelta(minutes=6), icon="wind.png",
    ),
    PlantFamily.SOLAR: FamilySpec(
        label="Solar", category=PlantCategory.RENEWABLE, stability=0.1,
        restart_time=timedelta(minutes=6), icon="solar.png",
        availability_start=time(7, 0), availability_end=time(18, 59),
    ),
}


def get_family_spec(family) -> FamilySpec:
    return FAMILY_SPECS[PlantFamily.from_kind(family)]
