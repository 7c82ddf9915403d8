from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Mapping

from ..exceptions import DataError


@dataclass(frozen=True)
class MinuteSnapshot:
    """State of the grid at one simulated minute.

    Attributes
    ----------
    time : datetime
        Simulated instant (whole minute).
    power_demand_mw : float
        Forecast demand for that minute (MW).
    stability : float
        Capacity-weighted grid stability in [0, 1].
    generated_power_mw : float
        Total output delivered by the fleet (MW).
    generated_by_type : Mapping[str, float]
        Output grouped by plant family label. Families with no output are
        omitted. Read-only.
    """
    time: datetime
    power_demand_mw: float
    stability: float
    generated_power_mw: float
    generated_by_type: Mapping[str, float] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        if not isinstance(self.time, datetime):
            raise DataError(f"{DataError.ERROR_TIME_NULL} Got {self.time!r}.")
        if not self.power_demand_mw >= 0:
            raise DataError(f"{DataError.ERROR_POWER_DEMAND} Got {self.power_demand_mw} at {self.time}.")
        if not 0 <= self.stability <= 1:
            raise DataError(f"{DataError.ERROR_INVALID_STABILITY} Got {self.stability} at {self.time}.")
        if not self.generated_power_mw >= 0:
            raise DataError(f"{DataError.ERROR_GENERATED_POWER} Got {self.generated_power_mw} at {self.time}.")
        generated_by_type = dict(self.generated_by_type or {})
        for label, output in generated_by_type.items():
            if not output > 0:
                raise DataError(f"{DataError.ERROR_GENERATED_BY_TYPE} Got {label}={output} at {self.time}.")
        object.__setattr__(self, "generated_by_type", MappingProxyType(generated_by_type))

    @property
    def unserved_power_mw(self) -> float:
        """Demand left uncovered in this minute (MW)."""
        return max(0.0, self.power_demand_mw - self.generated_power_mw)

    def to_dict(self) -> dict:
        return {
            "time": self.time.isoformat(),
            "expected_demand_mw": self.power_demand_mw,
            "generated_mw": self.generated_power_mw,
            "average_stability": self.stability,
            "generated_by_type_mw": dict(self.generated_by_type),
        }
