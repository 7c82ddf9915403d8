"""Module for grid_restore simulation results data structures and utilities."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from .common.utilities import concatenate_dataframes
from .constants import MINIMUM_STABILITY, STABILITY_WHEN_NO_GENERATION
from .models.minute_snapshot import MinuteSnapshot
from .models.plant_families import FAMILY_SPECS

MINUTES_PER_HOUR = 60.0
UNSERVED_TOLERANCE_MW = 1e-9


@dataclass
class SimulationResults:
    """Data class containing the results of one recovery simulation.

    This class stores the minute snapshots produced by a
    :class:`~grid_restore.simulation_main.RecoveryEngine` run, organized into
    DataFrames (per-minute generation, plant roster, summary) and provides
    convenient accessors for the usual recovery metrics.

    Attributes
    ----------
    case_name : str
        Case identifier, used in exported file names.
    blackout_time : datetime or None
        Instant of the total grid loss that started the run.
    snapshots : list of MinuteSnapshot
        One snapshot per simulated minute, in chronological order.
    generation_df : pd.DataFrame
        Per-minute load, generation, unserved demand, stability and output by
        plant family.
    plants_df : pd.DataFrame
        One row per plant of the roster.
    summary_df : pd.DataFrame
        Summary metrics with columns Metric, Technology, Value, Unit.
    generation_totals : dict
        Energy delivered over the run by plant family label (MWh).
    installed_capacity : dict
        Deliverable capacity of the roster by plant family label (MW).
    """

    case_name: str = "run"
    blackout_time: Optional[datetime] = None
    snapshots: List[MinuteSnapshot] = field(default_factory=list)

    # DataFrames for CSV export
    generation_df: pd.DataFrame = field(default_factory=pd.DataFrame)
    plants_df: pd.DataFrame = field(default_factory=pd.DataFrame)
    summary_df: pd.DataFrame = field(default_factory=pd.DataFrame)

    generation_totals: Dict[str, float] = field(default_factory=dict)
    installed_capacity: Dict[str, float] = field(default_factory=dict)

    # ----------------------------------------------------------------------------------
    # Recovery metrics
    # ----------------------------------------------------------------------------------

    @property
    def n_minutes(self) -> int:
        """Number of simulated minutes."""
        return len(self.snapshots)

    @property
    def min_stability(self) -> float:
        """Lowest grid stability reached during the run."""
        return min((s.stability for s in self.snapshots), default=STABILITY_WHEN_NO_GENERATION)

    @property
    def unstable_minutes(self) -> int:
        """Minutes whose stability stayed below the curtailment threshold."""
        return sum(1 for s in self.snapshots if s.stability < MINIMUM_STABILITY)

    @property
    def total_demand_mwh(self) -> float:
        """Forecast demand over the run (MWh)."""
        return sum(s.power_demand_mw for s in self.snapshots) / MINUTES_PER_HOUR

    @property
    def total_generation_mwh(self) -> float:
        """Energy delivered by the whole fleet over the run (MWh)."""
        return sum(s.generated_power_mw for s in self.snapshots) / MINUTES_PER_HOUR

    @property
    def unserved_energy_mwh(self) -> float:
        """Demand left uncovered over the run (MWh)."""
        return sum(s.unserved_power_mw for s in self.snapshots) / MINUTES_PER_HOUR

    @property
    def full_restoration_time(self) -> Optional[datetime]:
        """First minute from which every remaining minute has its demand fully served.

        Returns ``None`` if the last simulated minute still has unserved demand
        or if there are no snapshots.
        """
        restored_at = None
        for snapshot in reversed(self.snapshots):
            if snapshot.unserved_power_mw > UNSERVED_TOLERANCE_MW:
                break
            restored_at = snapshot.time
        return restored_at

    # ----------------------------------------------------------------------------------
    # DataFrame accessors
    # ----------------------------------------------------------------------------------

    def get_generation_dataframe(self) -> pd.DataFrame:
        """Get the per-minute generation DataFrame.

        Returns
        -------
        pd.DataFrame
            DataFrame with columns: Time, Minute, Load (MW), Generation (MW),
            Unserved (MW), Stability, and one ``<Label> Generation (MW)``
            column per plant family that generated at some point.
        """
        return self.generation_df.copy()

    def get_plants_dataframe(self) -> pd.DataFrame:
        """Get the plant roster DataFrame.

        Returns
        -------
        pd.DataFrame
            DataFrame with columns: Plant ID, Name, Technology, City, Latitude,
            Longitude, Max Capacity (MW), Max Output (MW), Stability,
            Restart Time (h).
        """
        return self.plants_df.copy()

    def get_summary_dataframe(self) -> pd.DataFrame:
        """Get the summary metrics DataFrame.

        Returns
        -------
        pd.DataFrame
            DataFrame with columns: Metric, Technology, Value, Unit.
        """
        return self.summary_df.copy()

    def to_records(self) -> List[dict]:
        """Snapshots as a list of plain dictionaries, e.g. for a JSON endpoint."""
        return [snapshot.to_dict() for snapshot in self.snapshots]


def _ordered_labels(labels) -> List[str]:
    """Family labels in FAMILY_SPECS order, unknown labels appended alphabetically."""
    known = [spec.label for spec in FAMILY_SPECS.values() if spec.label in labels]
    return known + sorted(set(labels) - set(known))


def collect_results_from_snapshots(snapshots, plants, blackout_time: Optional[datetime],
                                   case_name: str = "run") -> SimulationResults:
    """Collect the results of a recovery run into a SimulationResults.

    Parameters
    ----------
    snapshots : sequence of MinuteSnapshot
        Snapshots of the run, in chronological order.
    plants : iterable of PowerPlant
        The roster that was simulated.
    blackout_time : datetime or None
        Instant of the blackout that started the run.
    case_name : str, optional
        Case identifier. Defaults to "run".

    Returns
    -------
    SimulationResults
        A dataclass containing the snapshots and the derived DataFrames.
    """
    logging.info("Collecting grid_restore results...")

    results = SimulationResults(case_name=case_name, blackout_time=blackout_time, snapshots=list(snapshots))
    plants = list(plants)

    # ----------------------------------------------------------------------------------
    # Generation totals and installed capacity
    # ----------------------------------------------------------------------------------
    logging.debug("Collecting generation totals...")

    seen_labels = set()
    for snapshot in results.snapshots:
        seen_labels.update(snapshot.generated_by_type)
    labels = _ordered_labels(seen_labels)

    results.generation_totals = {
        label: sum(s.generated_by_type.get(label, 0.0) for s in results.snapshots) / MINUTES_PER_HOUR
        for label in labels
    }

    capacity: Dict[str, float] = {}
    for plant in plants:
        capacity[plant.type_label] = capacity.get(plant.type_label, 0.0) + plant.max_power_output()
    results.installed_capacity = {label: capacity[label] for label in _ordered_labels(capacity)}

    # ----------------------------------------------------------------------------------
    # Build generation DataFrame
    # ----------------------------------------------------------------------------------
    logging.debug("Building generation DataFrame...")

    gen_data = {
        "Time": [],
        "Minute": [],
        "Load (MW)": [],
        "Generation (MW)": [],
        "Unserved (MW)": [],
        "Stability": [],
    }
    for label in labels:
        gen_data[f"{label} Generation (MW)"] = []

    for minute, snapshot in enumerate(results.snapshots):
        gen_data["Time"].append(snapshot.time)
        gen_data["Minute"].append(minute)
        gen_data["Load (MW)"].append(snapshot.power_demand_mw)
        gen_data["Generation (MW)"].append(snapshot.generated_power_mw)
        gen_data["Unserved (MW)"].append(snapshot.unserved_power_mw)
        gen_data["Stability"].append(snapshot.stability)
        for label in labels:
            gen_data[f"{label} Generation (MW)"].append(snapshot.generated_by_type.get(label, 0.0))

    results.generation_df = pd.DataFrame(gen_data)

    # ----------------------------------------------------------------------------------
    # Build plants DataFrame
    # ----------------------------------------------------------------------------------
    logging.debug("Building plants DataFrame...")

    results.plants_df = pd.DataFrame(
        [
            {
                "Plant ID": plant.id,
                "Name": plant.name,
                "Technology": plant.type_label,
                "City": plant.city,
                "Latitude": plant.latitude,
                "Longitude": plant.longitude,
                "Max Capacity (MW)": plant.max_capacity_mw,
                "Max Output (MW)": plant.max_power_output(),
                "Stability": plant.stability,
                "Restart Time (h)": plant.restart_time.total_seconds() / 3600,
            }
            for plant in plants
        ],
        columns=[
            "Plant ID", "Name", "Technology", "City", "Latitude", "Longitude",
            "Max Capacity (MW)", "Max Output (MW)", "Stability", "Restart Time (h)",
        ],
    )

    # ----------------------------------------------------------------------------------
    # Build summary DataFrame
    # ----------------------------------------------------------------------------------
    logging.debug("Building summary DataFrame...")
    results.summary_df = _build_summary_dataframe(results)

    logging.info(f"Results collected: {results.n_minutes} minutes, "
                 f"{results.unserved_energy_mwh:.2f} MWh unserved, minimum stability {results.min_stability:.4f}")
    return results


def _build_summary_dataframe(results: SimulationResults) -> pd.DataFrame:
    """Build the summary DataFrame from results.

    Parameters
    ----------
    results : SimulationResults
        The results object with collected data.

    Returns
    -------
    pd.DataFrame
        Summary DataFrame with columns Metric, Technology, Value, Unit.
    """
    # Installed capacity
    capacity = dict(results.installed_capacity)
    capacity["All"] = sum(results.installed_capacity.values())
    summary_results = concatenate_dataframes(None, capacity, unit="MW", metric="Installed capacity")

    # Demand
    dem = {"All": results.total_demand_mwh}
    summary_results = concatenate_dataframes(summary_results, dem, unit="MWh", metric="Total demand")

    # Generation
    gen = dict(results.generation_totals)
    gen["All"] = results.total_generation_mwh
    summary_results = concatenate_dataframes(summary_results, gen, unit="MWh", metric="Total generation")

    # Unserved energy
    unserved = {"All": results.unserved_energy_mwh}
    summary_results = concatenate_dataframes(summary_results, unserved, unit="MWh", metric="Unserved energy")

    # Stability
    stab = {"All": results.min_stability}
    summary_results = concatenate_dataframes(summary_results, stab, unit="-", metric="Minimum stability")
    unstable = {"All": results.unstable_minutes}
    summary_results = concatenate_dataframes(summary_results, unstable, unit="min", metric="Minutes below minimum stability")

    # Restoration
    restored_at = results.full_restoration_time
    if restored_at is not None and results.snapshots:
        minutes_to_restore = (restored_at - results.snapshots[0].time).total_seconds() / 60
    else:
        minutes_to_restore = None
    summary_results = concatenate_dataframes(
        summary_results, {"All": minutes_to_restore}, unit="min", metric="Time to full restoration"
    )

    return summary_results
