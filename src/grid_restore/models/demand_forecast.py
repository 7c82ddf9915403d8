"""Daily demand forecast used by the recovery engine.

The forecast is a single daily curve at minute resolution that repeats every
day of the simulation window. It must be total: all 1440 minutes of the day
need a finite, non-negative demand value.
"""

import math
from datetime import datetime, time
from collections.abc import Mapping
from typing import Dict, Iterator

import pandas as pd

from ..constants import MINUTES_PER_DAY
from ..exceptions import ForecastError


def minutes_of_day() -> Iterator[time]:
    """Yields 00:00, 00:01, ..., 23:59."""
    for minute in range(MINUTES_PER_DAY):
        yield time(minute // 60, minute % 60)


def parse_time_of_day(key) -> time:
    """
    Normalizes a forecast key to a ``datetime.time`` at minute resolution.

    Args:
        key (time or str): A ``datetime.time`` or an ``"HH:MM"`` string
            (``"HH:MM:SS"`` is accepted when the seconds are zero).

    Returns:
        time: The time of day, seconds and microseconds zero.

    Raises:
        ForecastError: If the key cannot be parsed or is not on a whole minute.
    """
    if isinstance(key, datetime):
        key = key.time()
    if isinstance(key, str):
        try:
            key = time.fromisoformat(key.strip())
        except ValueError:
            raise ForecastError(f"{ForecastError.ERROR_INVALID_TIME_KEY}: {key!r}") from None
    if not isinstance(key, time):
        raise ForecastError(f"{ForecastError.ERROR_INVALID_TIME_KEY}: {key!r}")
    if key.second != 0 or key.microsecond != 0 or key.tzinfo is not None:
        raise ForecastError(f"{ForecastError.ERROR_INVALID_TIME_KEY}: {key!r} is not a whole minute")
    return key


class DemandForecast(Mapping):
    """Immutable, validated mapping from time of day to expected demand (MW).

    Examples
    --------
    >>> forecast = DemandForecast.constant(500.0)
    >>> forecast[time(12, 30)]
    500.0
    >>> len(forecast)
    1440
    """

    def __init__(self, demand_by_time):
        if demand_by_time is None or len(demand_by_time) == 0:
            raise ForecastError(ForecastError.ERROR_DEMAND_FORECAST_NULL)

        normalized: Dict[time, float] = {}
        for key, value in demand_by_time.items():
            minute = parse_time_of_day(key)
            if minute in normalized:
                raise ForecastError(f"{ForecastError.ERROR_INVALID_TIME_KEY}: {minute:%H:%M} appears more than once")
            normalized[minute] = value

        validated: Dict[time, float] = {}
        for minute in minutes_of_day():
            if minute not in normalized:
                raise ForecastError(f"{ForecastError.ERROR_DEMAND_FORECAST_MISSING_ENTRY} at {minute:%H:%M}.")
            try:
                demand = float(normalized[minute])
            except (TypeError, ValueError):
                raise ForecastError(
                    f"{ForecastError.ERROR_NEGATIVE_POWER_DEMAND_VALUE} Got {normalized[minute]!r} at {minute:%H:%M}."
                ) from None
            if not math.isfinite(demand) or demand < 0:
                raise ForecastError(
                    f"{ForecastError.ERROR_NEGATIVE_POWER_DEMAND_VALUE} Got {demand} at {minute:%H:%M}."
                )
            validated[minute] = demand

        self._demand = validated

    # Mapping protocol, iterates in time-of-day order
    def __getitem__(self, key) -> float:
        return self._demand[parse_time_of_day(key)]

    def __contains__(self, key):
        try:
            return parse_time_of_day(key) in self._demand
        except ForecastError:
            return False

    def __iter__(self):
        return iter(self._demand)

    def __len__(self):
        return len(self._demand)

    def __repr__(self):
        return f"DemandForecast(min={min(self._demand.values())}, max={max(self._demand.values())})"

    def demand_at(self, instant: datetime) -> float:
        """Expected demand (MW) at the time of day of ``instant``."""
        return self._demand[instant.time().replace(second=0, microsecond=0)]

    @property
    def peak_demand_mw(self) -> float:
        return max(self._demand.values())

    @property
    def daily_energy_mwh(self) -> float:
        return sum(self._demand.values()) / 60.0

    # ----------------------------------------------------------------------------------
    # Constructors and conversion
    # ----------------------------------------------------------------------------------

    @classmethod
    def constant(cls, demand_mw: float) -> "DemandForecast":
        """Flat forecast with the same demand at every minute."""
        return cls({minute: demand_mw for minute in minutes_of_day()})

    @classmethod
    def from_series(cls, series: pd.Series) -> "DemandForecast":
        """
        Builds a forecast from a pandas Series indexed by time of day.

        Args:
            series (pd.Series): Demand values (MW) indexed by ``datetime.time``
                or ``"HH:MM"`` strings.

        Returns:
            DemandForecast: The validated forecast.

        Raises:
            ForecastError: If the series is empty, has duplicated or missing
                minutes, or holds negative/non-finite values.
        """
        if series is None or series.empty:
            raise ForecastError(ForecastError.ERROR_DEMAND_FORECAST_NULL)
        if series.index.has_duplicates:
            duplicated = series.index[series.index.duplicated()].tolist()
            raise ForecastError(f"{ForecastError.ERROR_INVALID_TIME_KEY}: {duplicated[0]!r} appears more than once")
        return cls(dict(zip(series.index, series.tolist())))

    def to_series(self) -> pd.Series:
        """Forecast as a pandas Series indexed by ``"HH:MM"`` strings."""
        return pd.Series(
            list(self._demand.values()),
            index=[f"{minute:%H:%M}" for minute in self._demand],
            name="Demand (MW)",
        )
