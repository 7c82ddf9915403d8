"""Error taxonomy for grid_restore.

Every error raised by the package derives from :class:`GridRestoreError` and
carries a message prefixed with ``"[ERROR]: "``. The concrete classes also
derive from the built-in exception a caller would naturally catch
(``ValueError`` for bad data, ``RuntimeError`` for a call made in the wrong
state).
"""

from .constants import ERROR_PREFIX


class GridRestoreError(Exception):
    """Base class for all grid_restore errors."""

    def __init__(self, message: str):
        super().__init__(ERROR_PREFIX + message)


class ConfigurationError(GridRestoreError, ValueError):
    """A plant attribute is out of range or the plant family is unknown."""

    ERROR_NAME = "Name cannot be null or blank."
    ERROR_LATITUDE = "Latitude must be in range [-90,90]."
    ERROR_LONGITUDE = "Longitude must be in range [-180,180]."
    ERROR_CITY = "City name cannot be null or blank."
    ERROR_CAPACITY = "Max capacity cannot be negative."
    ERROR_STABILITY = "Stability must be between 0 and 1."
    ERROR_EFFICIENCY = "Efficiency must be in range [0,1]."
    ERROR_RESTART_TIME = "Restart time cannot be negative."
    ERROR_AVAILABILITY_WINDOW = "Availability window start must not be after its end."
    ERROR_NEGATIVE_POWER_ASSIGNMENT = "Power assignment of the power plant cannot be negative."
    ERROR_INVALID_POWER_PLANT_TYPE = "Type of power plant is invalid or null."
    ERROR_FIXED_FAMILY_OVERRIDE = "Stability and restart time can only be configured for FUEL_GAS plants."


class ForecastError(GridRestoreError, ValueError):
    """The demand forecast is missing, incomplete or has invalid values."""

    ERROR_DEMAND_FORECAST_NULL = "Demand forecast is null or empty."
    ERROR_DEMAND_FORECAST_MISSING_ENTRY = "There is a missing demand forecast entry"
    ERROR_NEGATIVE_POWER_DEMAND_VALUE = "Demand forecast contains a negative value."
    ERROR_INVALID_TIME_KEY = "Demand forecast contains an invalid time of day"


class PreconditionError(GridRestoreError, RuntimeError):
    """A run was requested in a state where it cannot be performed."""

    ERROR_POWER_PLANT_LIST_IS_EMPTY = "Power plant list is empty, cannot perform a simulation."
    ERROR_BLACKOUT_TIME_NULL = "Blackout time cannot be null."


class DataError(GridRestoreError, ValueError):
    """A minute snapshot was built with an out-of-range field."""

    ERROR_TIME_NULL = "Time cannot be null."
    ERROR_INVALID_STABILITY = "Stability must be between 0 and 1."
    ERROR_POWER_DEMAND = "Power demand cannot be negative."
    ERROR_GENERATED_POWER = "Power generation cannot be negative."
    ERROR_GENERATED_BY_TYPE = "Generation by plant type must only hold positive values."
