import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from .constants import (
    DEFAULT_EFFICIENCY,
    MINIMUM_STABILITY,
    SIMULATION_DURATION_MINUTES,
    STABILITY_WHEN_NO_GENERATION,
)
from .exceptions import ForecastError, PreconditionError
from .io_manager import load_data
from .models.demand_forecast import DemandForecast
from .models.minute_snapshot import MinuteSnapshot
from .models.plant_families import PlantState
from .models.power_plant import PowerPlant
from .results import UNSERVED_TOLERANCE_MW, SimulationResults, collect_results_from_snapshots
from .utils_performance_meassure import RunProfiler

# ---------------------------------------------------------------------------------
# Dispatch helpers
# ---------------------------------------------------------------------------------

@dataclass(frozen=True)
class PriorityTiers:
    """Plants grouped by dispatch priority, each tier already in dispatch order."""
    renewables: Tuple[PowerPlant, ...]
    nuclear: Tuple[PowerPlant, ...]
    thermal: Tuple[PowerPlant, ...]

    def in_dispatch_order(self):
        return (self.renewables, self.nuclear, self.thermal)


def build_priority_tiers(plants) -> PriorityTiers:
    """
    Splits the roster into the three dispatch tiers.

    - Renewables: descending stability, ties by ascending id.
    - Nuclear: ascending id.
    - Thermal: ascending id.

    Args:
        plants (iterable of PowerPlant): The whole roster, availability is
            not filtered here (unavailable plants ignore assignments).

    Returns:
        PriorityTiers: The sorted tiers.
    """
    renewables = sorted((p for p in plants if p.is_renewable), key=lambda p: (-p.stability, p.id))
    nuclear = sorted((p for p in plants if p.is_nuclear), key=lambda p: p.id)
    thermal = sorted((p for p in plants if p.is_thermal), key=lambda p: p.id)
    return PriorityTiers(tuple(renewables), tuple(nuclear), tuple(thermal))


def reset_plants_for_minute(plants, blackout_time: datetime, current_time: datetime):
    for plant in plants:
        plant.reset_for_minute(blackout_time, current_time)


def assign_generation(plants, demand_mw: float) -> float:
    """
    Greedily assigns ``demand_mw`` to ``plants`` in the given order.

    Each plant is asked for the whole remaining demand; whatever it adds is
    subtracted and the plant goes ONLINE if it added anything. The loop stops
    as soon as nothing is left to cover.

    Args:
        plants (iterable of PowerPlant): Plants in dispatch order.
        demand_mw (float): Demand to cover (MW).

    Returns:
        float: Demand that could not be allocated to these plants (MW).
    """
    remaining = demand_mw
    for plant in plants:
        if remaining <= 0:
            break
        assigned = plant.assign_power_output(remaining)
        if assigned > 0:
            plant.bring_online()
        remaining -= assigned
    return remaining


def allocate_by_priority(tiers: PriorityTiers, demand_mw: float) -> float:
    """Renewables first, then nuclear, then thermal. Returns the unmet demand (MW)."""
    remaining = demand_mw
    for tier in tiers.in_dispatch_order():
        remaining = assign_generation(tier, remaining)
    return remaining


def calculate_generated_power_mw(plants) -> float:
    return sum(plant.simulate_power_output_mw() for plant in plants)


def calculate_stability(plants) -> float:
    """
    Capacity-weighted average stability of the plants currently generating.

    Returns:
        float: ``sum(output * stability) / sum(output)``, or 1.0 when nothing
            is generating.
    """
    weighted_generation = 0.0
    total_generation = 0.0
    for plant in plants:
        output = plant.simulate_power_output_mw()
        weighted_generation += output * plant.stability
        total_generation += output

    if total_generation == 0:
        return STABILITY_WHEN_NO_GENERATION
    return weighted_generation / total_generation


def calculate_generated_power_by_type(plants) -> Dict[str, float]:
    """Output grouped by family label, families without output left out."""
    generated_by_type: Dict[str, float] = {}
    for plant in plants:
        output = plant.simulate_power_output_mw()
        if output > 0:
            generated_by_type[plant.type_label] = generated_by_type.get(plant.type_label, 0.0) + output
    return generated_by_type


def curtail_renewables(plants, stability: float, remaining_mw: float,
                       minimum_stability: float = MINIMUM_STABILITY) -> Tuple[float, float]:
    """
    Disconnects online renewables until the grid is stable enough.

    Candidates are the renewables ONLINE when the function is called, taken
    from the least stable up; on equal stability the most recently added
    plant (highest id) goes first. Each disconnection hands the plant's
    output back to the unmet demand and the stability is recomputed.

    Args:
        plants (list of PowerPlant): The whole roster.
        stability (float): Grid stability after the allocation pass.
        remaining_mw (float): Demand still unmet after the allocation pass.
        minimum_stability (float, optional): Threshold to restore.

    Returns:
        tuple: ``(remaining_mw, stability)`` after curtailment.
    """
    candidates = sorted(
        (p for p in plants if p.is_renewable and p.state == PlantState.ONLINE),
        key=lambda p: (p.stability, -p.id),
    )
    for plant in candidates:
        if stability >= minimum_stability:
            break
        disconnected_output = plant.disconnect()
        remaining_mw += disconnected_output
        stability = calculate_stability(plants)
        logging.debug(f"Curtailed {plant.type_label} plant #{plant.id} '{plant.name}' "
                      f"({disconnected_output:.2f} MW), stability now {stability:.4f}")
    return remaining_mw, stability


def build_minute_snapshot(current_time: datetime, demand_mw: float, plants) -> MinuteSnapshot:
    return MinuteSnapshot(
        time=current_time,
        power_demand_mw=demand_mw,
        stability=calculate_stability(plants),
        generated_power_mw=calculate_generated_power_mw(plants),
        generated_by_type=calculate_generated_power_by_type(plants),
    )


# ---------------------------------------------------------------------------------
# Recovery engine
# ---------------------------------------------------------------------------------

class RecoveryEngine:
    """
    Simulates the recovery of the grid after a total blackout.

    The engine owns the plant roster and the daily demand forecast. Each call
    to :meth:`run` replays the 36 hours that follow a blackout, one minute at a
    time, and returns one :class:`MinuteSnapshot` per minute. The roster and
    the forecast are kept between runs, so the same engine can be replayed
    for several blackout instants.

    Args:
        demand_forecast (DemandForecast or mapping): Daily forecast, validated
            on construction.
        profile (bool, optional): If True, time spent in each phase of the
            per-minute algorithm is accumulated in ``engine.profiler``.
            Defaults to False.

    Raises:
        ForecastError: If the forecast is missing, incomplete or has negative values.

    Examples:
        >>> engine = RecoveryEngine(DemandForecast.constant(500.0))
        >>> engine.add_plant("NUCLEAR", "Almaraz", 39.8, -5.7, "Almaraz", 1000.0)
        0
        >>> snapshots = engine.run(datetime(2025, 4, 28, 12, 33))
        >>> len(snapshots)
        2160
    """

    def __init__(self, demand_forecast, profile: bool = False):
        self._plants: List[PowerPlant] = []
        self._next_plant_id = 0
        self._demand_forecast: Optional[DemandForecast] = None
        self._simulation_results: List[MinuteSnapshot] = []
        self.blackout_time: Optional[datetime] = None
        self.simulation_time: Optional[datetime] = None
        self.profile = profile
        self.profiler = RunProfiler(enabled=False)
        self.configure(demand_forecast)

    # ----------------------------------- Configuration -----------------------------------

    def configure(self, demand_forecast):
        """
        Validates and installs the daily demand forecast.

        Args:
            demand_forecast (DemandForecast or mapping): 1440 entries, time of
                day to demand (MW).

        Raises:
            ForecastError: If the forecast is None, empty, misses a minute or
                holds a negative value. The previous forecast is kept.
        """
        if demand_forecast is None:
            raise ForecastError(ForecastError.ERROR_DEMAND_FORECAST_NULL)
        if not isinstance(demand_forecast, DemandForecast):
            demand_forecast = DemandForecast(demand_forecast)
        self._demand_forecast = demand_forecast
        logging.info(f"Demand forecast configured (peak {demand_forecast.peak_demand_mw:.2f} MW, "
                     f"{demand_forecast.daily_energy_mwh:.2f} MWh/day)")

    @property
    def demand_forecast(self) -> DemandForecast:
        return self._demand_forecast

    def add_plant(self, plant_type, name, latitude, longitude, city, max_capacity_mw,
                  efficiency=DEFAULT_EFFICIENCY, *, stability=None, restart_time: Optional[timedelta] = None) -> int:
        """
        Registers a new plant in the roster.

        Args:
            plant_type (str): Family kind: NUCLEAR, COAL, COMBINED_CYCLE,
                BIOMASS, FUEL_GAS, HYDRO, WIND or SOLAR.
            name (str): Plant name.
            latitude (float): Latitude in degrees.
            longitude (float): Longitude in degrees.
            city (str): City where the plant is located.
            max_capacity_mw (float): Nameplate capacity (MW).
            efficiency (float, optional): Efficiency in [0, 1], only used by
                renewable families. Defaults to 1.0.
            stability (float, optional): FUEL_GAS only, overrides the family stability.
            restart_time (timedelta, optional): FUEL_GAS only, overrides the
                family restart time.

        Returns:
            int: Identity of the new plant. Identities follow registration order.

        Raises:
            ConfigurationError: If the family is unknown or an attribute is out of range.
        """
        plant = PowerPlant(
            id=self._next_plant_id,
            family=plant_type,
            name=name,
            latitude=latitude,
            longitude=longitude,
            city=city,
            max_capacity_mw=max_capacity_mw,
            efficiency=efficiency,
            stability=stability,
            restart_time=restart_time,
        )
        self._next_plant_id += 1
        self._plants.append(plant)
        logging.debug(f"Added {plant.type_label} plant #{plant.id} '{plant.name}' "
                      f"({plant.max_power_output():.2f} MW deliverable)")
        return plant.id

    @property
    def plants(self) -> Tuple[PowerPlant, ...]:
        """The roster, in registration order."""
        return tuple(self._plants)

    def get_plant(self, plant_id: int) -> PowerPlant:
        for plant in self._plants:
            if plant.id == plant_id:
                return plant
        raise KeyError(plant_id)

    # ----------------------------------- Simulation -----------------------------------

    def run(self, blackout_time: datetime) -> List[MinuteSnapshot]:
        """
        Simulates the 36 hours following a blackout.

        The simulated clock starts at ``blackout_time`` truncated to the whole
        minute and advances one minute per step. Restart times are measured
        from the untruncated ``blackout_time``.

        Args:
            blackout_time (datetime): Instant of the total grid loss.

        Returns:
            list of MinuteSnapshot: 2160 snapshots in chronological order.

        Raises:
            PreconditionError: If the roster is empty or the blackout time is
                missing. No snapshots are produced in that case.
        """
        if not self._plants:
            raise PreconditionError(PreconditionError.ERROR_POWER_PLANT_LIST_IS_EMPTY)
        if blackout_time is None or not isinstance(blackout_time, datetime):
            raise PreconditionError(f"{PreconditionError.ERROR_BLACKOUT_TIME_NULL} Got {blackout_time!r}.")

        logging.info(f"Running recovery simulation from blackout at {blackout_time} "
                     f"with {len(self._plants)} plants...")

        self._simulation_results = []
        self.blackout_time = blackout_time
        self.simulation_time = blackout_time.replace(second=0, microsecond=0)

        tiers = build_priority_tiers(self._plants)
        profiler = RunProfiler(enabled=self.profile)
        profiler.start()
        snapshots: List[MinuteSnapshot] = []
        restored_plant_ids = set()
        try:
            for _ in range(SIMULATION_DURATION_MINUTES):
                snapshot = self._create_new_minute_simulation(tiers, profiler)
                previous = snapshots[-1] if snapshots else None
                self._log_restoration_milestones(snapshot, previous, restored_plant_ids)
                snapshots.append(snapshot)
                self.simulation_time += timedelta(minutes=1)
        finally:
            profiler.stop()

        self._simulation_results = snapshots
        self.profiler = profiler

        unstable_minutes = sum(1 for s in snapshots if s.stability < MINIMUM_STABILITY)
        if unstable_minutes:
            logging.warning(f"Grid stability stayed below {MINIMUM_STABILITY} in {unstable_minutes} minutes "
                            "with no renewable output left to curtail.")
        logging.info(f"Recovery simulation finished: {len(snapshots)} minutes simulated.")
        return list(snapshots)

    def _create_new_minute_simulation(self, tiers: PriorityTiers, profiler: RunProfiler) -> MinuteSnapshot:
        current_time = self.simulation_time

        profiler.measure_step("Availability", reset_plants_for_minute, self._plants, self.blackout_time, current_time)

        demand = self._demand_forecast.demand_at(current_time)
        remaining = profiler.measure_step("Allocation", allocate_by_priority, tiers, demand)

        stability = calculate_stability(self._plants)
        remaining, stability = profiler.measure_step(
            "Curtailment", curtail_renewables, self._plants, stability, remaining
        )

        # Freed demand only goes back to nuclear, thermal is not revisited
        profiler.measure_step("Nuclear top-up", assign_generation, tiers.nuclear, remaining)

        return profiler.measure_step("Snapshot", build_minute_snapshot, current_time, demand, self._plants)

    def _log_restoration_milestones(self, snapshot: MinuteSnapshot, previous: Optional[MinuteSnapshot],
                                    restored_plant_ids: set):
        """Logs the first minute each plant delivers power and every minute the demand becomes fully served."""
        for plant in self._plants:
            if plant.assigned_output_mw > 0 and plant.id not in restored_plant_ids:
                restored_plant_ids.add(plant.id)
                logging.debug(f"{snapshot.time}: {plant.type_label} plant #{plant.id} '{plant.name}' "
                              f"back online with {plant.assigned_output_mw:.2f} MW")

        served = snapshot.unserved_power_mw <= UNSERVED_TOLERANCE_MW
        was_served = previous is not None and previous.unserved_power_mw <= UNSERVED_TOLERANCE_MW
        if served and not was_served:
            logging.debug(f"{snapshot.time}: demand of {snapshot.power_demand_mw:.2f} MW fully served "
                          f"({len(restored_plant_ids)} plants restored so far)")

    @property
    def simulation_results(self) -> Tuple[MinuteSnapshot, ...]:
        """Snapshots of the last run (empty before the first run)."""
        return tuple(self._simulation_results)

    def get_simulation_results(self, case_name: str = "run") -> SimulationResults:
        """Last run's snapshots wrapped in a :class:`SimulationResults`."""
        return collect_results_from_snapshots(
            self._simulation_results, self._plants, self.blackout_time, case_name=case_name
        )


# ---------------------------------------------------------------------------------
# Convenience entry points
# ---------------------------------------------------------------------------------

def build_engine(data: dict, profile: bool = False) -> RecoveryEngine:
    """
    Builds a RecoveryEngine from the dictionary returned by ``load_data``.

    Args:
        data (dict): Must hold 'demand_forecast' (DemandForecast) and 'plants'
            (DataFrame with the columns of ``constants.PLANTS_CSV_COLUMNS``).
        profile (bool, optional): Enable per-phase profiling.

    Returns:
        RecoveryEngine: Engine with every plant of the table registered.
    """
    engine = RecoveryEngine(data["demand_forecast"], profile=profile)
    for row in data["plants"].itertuples(index=False):
        engine.add_plant(row.type, row.name, row.latitude, row.longitude, row.city,
                         row.max_capacity_mw, row.efficiency)
    logging.info(f"Recovery engine ready with {len(engine.plants)} plants.")
    return engine


def run_blackout_simulation(input_data_dir: str, blackout_time: datetime, case_name: str = "run",
                            profile: bool = False) -> SimulationResults:
    """
    Loads the inputs of ``input_data_dir``, runs one recovery simulation and
    returns the collected results.

    Examples:
        >>> results = run_blackout_simulation('./Data/test_case/', datetime(2025, 4, 28, 12, 33))
        >>> len(results.snapshots)
        2160
    """
    data = load_data(input_data_dir)
    engine = build_engine(data, profile=profile)
    engine.run(blackout_time)
    if profile:
        engine.profiler.print_summary_table(logger=logging.getLogger())
    return engine.get_simulation_results(case_name=case_name)
