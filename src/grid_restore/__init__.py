"""Entry point for grid_restore."""

from .config_grid_restore import configure_logging
from .exceptions import ConfigurationError, DataError, ForecastError, GridRestoreError, PreconditionError
from .io_manager import export_results, load_data, load_demand_forecast, load_plants
from .models.demand_forecast import DemandForecast
from .models.minute_snapshot import MinuteSnapshot
from .models.plant_families import PlantFamily, PlantState
from .models.power_plant import PowerPlant
from .results import SimulationResults
from .simulation_main import RecoveryEngine, build_engine, run_blackout_simulation

__all__ = [
    "build_engine",
    "configure_logging",
    "ConfigurationError",
    "DataError",
    "DemandForecast",
    "export_results",
    "ForecastError",
    "GridRestoreError",
    "load_data",
    "load_demand_forecast",
    "load_plants",
    "MinuteSnapshot",
    "PlantFamily",
    "PlantState",
    "PowerPlant",
    "PreconditionError",
    "RecoveryEngine",
    "run_blackout_simulation",
    "SimulationResults",
]
