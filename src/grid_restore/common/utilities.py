import logging
import os
from typing import Optional

import pandas as pd


# Normalize base_name and file name for comparison: ignore spaces, "-", "_", and case
def normalize_string(name:str) -> str:
    """
    Normalizes a string for case-insensitive file name comparison.

    Removes spaces, hyphens, and underscores, then converts to lowercase.

    Args:
        name (str): The string to normalize.

    Returns:
        str: Normalized string.

    Examples:
        >>> normalize_string("Demand_Forecast-2025.csv")
        'demandforecast2025.csv'
    """
    return name.replace(' ', '').replace('-', '').replace('_', '').lower()

def get_complete_path(filepath, file_name):
    """
    Searches for a CSV file in a directory using fuzzy name matching.

    Both the target name and the directory entries are normalized, so
    ``Demand Forecast.csv`` or ``demand-forecast_2025.csv`` match
    ``demand_forecast.csv``.

    Args:
        filepath (str): Directory where the file should be located.
        file_name (str): Base name of the file to search for, with its .csv extension.

    Returns:
        str: Full path to the matched file if found, empty string otherwise.
    """
    base_name, ext = os.path.splitext(file_name)
    if ext.lower() == '.csv' and os.path.isdir(filepath):
        for f in sorted(os.listdir(filepath)):
            normalized_f = normalize_string(f.split('.csv')[0])
            if normalized_f.startswith(normalize_string(base_name)) and f.lower().endswith('.csv'):
                logging.debug(f"Found matching file: {f}")
                return os.path.join(filepath, f)

    return ""

def check_file_exists(filepath, file_name, file_description = ""):
    """
    Verifies that a required input file exists in the specified directory.

    Args:
        filepath (str): Directory where the file should be located.
        file_name (str): Name of the file to check for.
        file_description (str, optional): Human-readable description of the file's
            purpose (used in error messages). Defaults to "".

    Returns:
        str: Full path to the file if found.

    Raises:
        FileNotFoundError: If the specified file cannot be found in the directory.

    Examples:
        >>> path = check_file_exists("./Data/test_case/", "plants.csv", "plant roster")
        >>> plants = pd.read_csv(path, comment='#')
    """
    input_file_path = get_complete_path(filepath, file_name)

    if not os.path.isfile(input_file_path):
        logging.error(f"Expected {file_description} file not found: {os.path.join(filepath, file_name)}")
        raise FileNotFoundError(f"Expected {file_description} file not found: {os.path.join(filepath, file_name)}")

    return input_file_path

def concatenate_dataframes( df: Optional[pd.DataFrame],
                           new_data_dict: dict,
                           unit = 'MWh',
                           metric = ''
                        ):
    """Concatenates new summary rows to an existing pandas DataFrame.

    Each key of ``new_data_dict`` becomes one row (its 'Technology'), tagged
    with the given 'Metric' and 'Unit'.

    Parameters
    ----------
    df : pd.DataFrame or None
        The DataFrame to which the new rows will be appended. None starts a
        new summary.
    new_data_dict : dict
        Mapping from technology label to value.
    unit : str, optional
        Unit of measurement; defaults to 'MWh'.
    metric : str, optional
        Metric name; defaults to an empty string.

    Returns
    -------
    pd.DataFrame
        The updated DataFrame, columns Metric, Technology, Value, Unit.
    """
    new_df = pd.DataFrame.from_dict(new_data_dict, orient='index', columns=['Value'])
    new_df = new_df.reset_index(names=['Technology'])
    new_df['Unit'] = unit
    new_df['Metric'] = metric
    new_df = new_df[['Metric', 'Technology', 'Value', 'Unit']]
    if df is None or df.empty:
        return new_df.reset_index(drop=True)
    return pd.concat([df, new_df], ignore_index=True)
