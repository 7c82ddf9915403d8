import io
import logging
import os

import pandas as pd

from .common.utilities import check_file_exists
from .constants import (
    DEFAULT_EFFICIENCY,
    DEMAND_CSV_COLUMNS,
    INPUT_CSV_NAMES,
    OUTPUT_CSV_NAMES,
    PLANTS_CSV_COLUMNS,
)
from .exceptions import ForecastError
from .models.demand_forecast import DemandForecast
from .results import SimulationResults

MANDATORY_PLANT_COLUMNS = PLANTS_CSV_COLUMNS[:-1]


def _read_csv_skipping_comments(file_path: str, **kwargs) -> pd.DataFrame:
    """Reads a CSV ignoring lines whose first non-blank character is '#'. A '#' inside a field is kept."""
    with open(file_path, newline='') as file:
        lines = [line for line in file if not line.lstrip().startswith('#')]
    return pd.read_csv(io.StringIO(''.join(lines)), skip_blank_lines=True, skipinitialspace=True, **kwargs)


def load_plants(file_path: str) -> pd.DataFrame:
    """
    Loads the plant roster from a CSV file.

    The file has a header row with the columns ``type, name, latitude,
    longitude, city, max_capacity_mw`` and an optional ``efficiency`` column.
    Lines starting with ``#`` and blank lines are ignored.

    Args:
        file_path (str): Path to the roster CSV.

    Returns:
        pd.DataFrame: One row per plant with the columns of
            ``constants.PLANTS_CSV_COLUMNS``, in file order. Missing
            efficiencies are filled with 1.0.

    Raises:
        ValueError: If a mandatory column is missing from the header.

    Side Effects:
        Logs a warning for every row skipped because a mandatory field is empty.
    """
    plants = _read_csv_skipping_comments(file_path)
    plants.columns = [str(c).strip().lower() for c in plants.columns]

    missing_columns = [c for c in MANDATORY_PLANT_COLUMNS if c not in plants.columns]
    if missing_columns:
        raise ValueError(f"Plant roster '{file_path}' is missing the columns {missing_columns}. "
                         f"Expected columns: {PLANTS_CSV_COLUMNS}")
    if 'efficiency' not in plants.columns:
        plants['efficiency'] = DEFAULT_EFFICIENCY

    incomplete = plants[MANDATORY_PLANT_COLUMNS].isna().any(axis=1)
    for row_number in plants.index[incomplete]:
        logging.warning(f"Skipping plant row {row_number + 1} of '{file_path}': missing mandatory fields "
                        f"({plants.loc[row_number, MANDATORY_PLANT_COLUMNS].to_dict()})")
    plants = plants.loc[~incomplete, PLANTS_CSV_COLUMNS].reset_index(drop=True)
    plants['efficiency'] = plants['efficiency'].fillna(DEFAULT_EFFICIENCY)

    logging.debug(f"-- It were loaded a total of {len(plants)} power plants.")
    return plants


def load_demand_forecast(file_path: str) -> DemandForecast:
    """
    Loads the daily demand forecast from a CSV file.

    Args:
        file_path (str): Path to a CSV with the columns ``time`` (``HH:MM``)
            and ``demand_mw``. Lines starting with ``#`` are ignored.

    Returns:
        DemandForecast: The validated forecast.

    Raises:
        ForecastError: If a column is missing, a minute of the day is missing
            or duplicated, or a value is negative.
    """
    forecast = _read_csv_skipping_comments(file_path, dtype={'time': str})
    forecast.columns = [str(c).strip().lower() for c in forecast.columns]

    missing_columns = [c for c in DEMAND_CSV_COLUMNS if c not in forecast.columns]
    if missing_columns:
        raise ForecastError(f"Demand forecast '{file_path}' is missing the columns {missing_columns}.")

    series = forecast.set_index('time')['demand_mw']
    demand_forecast = DemandForecast.from_series(series)
    logging.debug(f"-- Demand forecast loaded with a peak of {demand_forecast.peak_demand_mw:.2f} MW.")
    return demand_forecast


def load_data( input_data_dir:str = './Data/' ):
    """
    Loads all required grid_restore input datasets from CSV files in the specified directory.

    File names are matched loosely (case, spaces, hyphens and underscores are
    ignored), so ``Demand Forecast 2025.csv`` is accepted for
    ``demand_forecast.csv``.

    Args:
        input_data_dir (str, optional): Directory containing the files listed
            in ``constants.INPUT_CSV_NAMES``. Defaults to './Data/'.

    Returns:
        dict: Dictionary with the keys:
            - "plants" (pd.DataFrame): Plant roster, see :func:`load_plants`.
            - "demand_forecast" (DemandForecast): Daily demand curve.

    Raises:
        FileNotFoundError: If a required CSV file is missing from input_data_dir.
        ForecastError: If the forecast is incomplete or invalid.

    Examples:
        >>> data = load_data('./Data/test_case/')
        >>> len(data['demand_forecast'])
        1440
    """
    logging.info("Loading grid_restore input data...")

    logging.debug("- Trying to load power plants data...")
    input_file_path = check_file_exists(input_data_dir, INPUT_CSV_NAMES["plants"], "power plants roster")
    plants = load_plants(input_file_path)

    logging.debug("- Trying to load demand forecast data...")
    input_file_path = check_file_exists(input_data_dir, INPUT_CSV_NAMES["demand_forecast"], "daily demand forecast")
    demand_forecast = load_demand_forecast(input_file_path)

    logging.info(f"Input data loaded: {len(plants)} power plants and a {len(demand_forecast)}-minute demand forecast.")
    return {
        "plants": plants,
        "demand_forecast": demand_forecast,
    }


def export_results( results: SimulationResults, case, output_dir = './results_grid_restore/' ):
    """
    Exports the results of a recovery run to CSV files.

    Args:
        results (SimulationResults): Results returned by
            ``RecoveryEngine.get_simulation_results`` or ``run_blackout_simulation``.
        case (str or int): Identifier of the case, appended to the file names.
        output_dir (str, optional): Directory where the CSV files are written.
            Created if it does not exist. Defaults to './results_grid_restore/'.

    Returns:
        None

    Side Effects:
        Creates up to three CSV files in output_dir:

        1. **OutputGeneration_{case}.csv**: One row per simulated minute with
           load, generation, unserved demand, stability and output by family.
        2. **OutputSummary_{case}.csv**: Metric, Technology, Value, Unit.
        3. **OutputPlants_{case}.csv**: The simulated plant roster.

    Examples:
        >>> results = run_blackout_simulation('./Data/test_case/', datetime(2025, 4, 28, 12, 33))
        >>> export_results(results, case='apr28', output_dir='./results/')
    """
    os.makedirs(output_dir, exist_ok=True)

    logging.info("Exporting csv files containing grid_restore results...")

    logging.debug("-- Saving generation results to CSV...")
    if not results.generation_df.empty:
        results.generation_df.to_csv(
            os.path.join(output_dir, f"{OUTPUT_CSV_NAMES['generation']}_{case}.csv"), index=False
        )

    logging.debug("-- Saving summary results to CSV...")
    if len(results.summary_df) > 0:
        results.summary_df.to_csv(
            os.path.join(output_dir, f"{OUTPUT_CSV_NAMES['summary']}_{case}.csv"), index=False
        )

    logging.debug("-- Saving plants results to CSV...")
    if len(results.plants_df) > 0:
        results.plants_df.to_csv(
            os.path.join(output_dir, f"{OUTPUT_CSV_NAMES['plants']}_{case}.csv"), index=False
        )
