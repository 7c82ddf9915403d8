import logging
from datetime import datetime, time, timedelta

import pytest

from grid_restore.exceptions import ConfigurationError, ForecastError, PreconditionError
from grid_restore.io_manager import load_data
from grid_restore.models.demand_forecast import DemandForecast
from grid_restore.models.plant_families import PlantState
from grid_restore.models.power_plant import PowerPlant
from grid_restore import simulation_main
from grid_restore.simulation_main import (
    RecoveryEngine,
    allocate_by_priority,
    build_engine,
    build_minute_snapshot,
    build_priority_tiers,
    calculate_stability,
    curtail_renewables,
    reset_plants_for_minute,
)

from utils_tests import get_blackout_time, get_engine, get_flat_forecast_dict, get_test_data_path, minute_after_blackout


# ---------------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------------

def test_plant_ids_follow_registration_order():
    engine = get_engine()
    assert engine.add_plant("NUCLEAR", "Almaraz I", 39.8, -5.7, "Almaraz", 1049) == 0
    assert engine.add_plant("wind", "Ourol", 43.5, -7.6, "Ourol", 300, 0.35) == 1
    assert [p.id for p in engine.plants] == [0, 1]
    assert engine.get_plant(1).name == "Ourol"
    with pytest.raises(KeyError):
        engine.get_plant(7)


def test_rejected_plant_does_not_consume_an_id():
    engine = get_engine()
    with pytest.raises(ConfigurationError):
        engine.add_plant("GEOTHERMAL", "Nowhere", 0, 0, "Nowhere", 10)
    with pytest.raises(ConfigurationError):
        engine.add_plant("SOLAR", "Bad", 0, 0, "Sevilla", 10, 1.5)
    assert engine.add_plant("SOLAR", "Good", 37.4, -6.0, "Sevilla", 10, 0.5) == 0
    assert len(engine.plants) == 1


def test_fuel_gas_overrides_through_engine():
    engine = get_engine()
    plant_id = engine.add_plant("FUEL_GAS", "Ibiza", 38.9, 1.4, "Ibiza", 200,
                                stability=0.65, restart_time=timedelta(minutes=20))
    plant = engine.get_plant(plant_id)
    assert plant.stability == 0.65
    assert plant.restart_time == timedelta(minutes=20)


def test_engine_requires_a_complete_forecast():
    with pytest.raises(ForecastError):
        RecoveryEngine(None)

    demand = get_flat_forecast_dict()
    del demand[time(23, 59)]
    with pytest.raises(ForecastError):
        RecoveryEngine(demand)


def test_configure_replaces_the_forecast_only_when_valid():
    engine = RecoveryEngine(get_flat_forecast_dict(300.0))
    assert isinstance(engine.demand_forecast, DemandForecast)

    bad = get_flat_forecast_dict(300.0)
    bad[time(5, 0)] = -1.0
    with pytest.raises(ForecastError):
        engine.configure(bad)
    assert engine.demand_forecast[time(5, 0)] == 300.0

    engine.configure(DemandForecast.constant(700.0))
    assert engine.demand_forecast.peak_demand_mw == 700.0


# ---------------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------------

def test_run_with_empty_roster_fails_without_snapshots():
    engine = get_engine()
    with pytest.raises(PreconditionError):
        engine.run(get_blackout_time())
    assert engine.simulation_results == ()


def test_run_without_blackout_time_fails():
    engine = get_engine(plants=[("NUCLEAR", 1000)])
    with pytest.raises(PreconditionError):
        engine.run(None)
    assert engine.simulation_results == ()


# ---------------------------------------------------------------------------------
# Recovery scenarios
# ---------------------------------------------------------------------------------

def test_run_produces_36_hours_of_consecutive_minutes():
    engine = get_engine(plants=[("HYDRO", 100)])
    blackout = datetime(2025, 4, 28, 12, 33, 42)
    snapshots = engine.run(blackout)

    assert len(snapshots) == 2160
    assert snapshots[0].time == datetime(2025, 4, 28, 12, 33)
    assert snapshots[-1].time == datetime(2025, 4, 28, 12, 33) + timedelta(minutes=2159)
    assert all(b.time - a.time == timedelta(minutes=1) for a, b in zip(snapshots, snapshots[1:]))
    assert engine.blackout_time == blackout


def test_nuclear_comes_online_once_restart_time_has_fully_elapsed():
    engine = get_engine(500.0, plants=[("NUCLEAR", 1000)])
    snapshots = engine.run(get_blackout_time())

    for snapshot in snapshots[:1441]:
        assert snapshot.power_demand_mw == 500.0
        assert snapshot.generated_power_mw == 0.0
        assert snapshot.stability == 1.0
        assert dict(snapshot.generated_by_type) == {}

    for snapshot in snapshots[1441:]:
        assert snapshot.generated_power_mw == 500.0
        assert snapshot.stability == 1.0
        assert dict(snapshot.generated_by_type) == {"Nuclear": 500.0}

    nuclear = engine.get_plant(0)
    assert nuclear.state == PlantState.ONLINE
    assert nuclear.assigned_output_mw == 500.0


def test_solar_and_nuclear_share_daylight_demand():
    engine = get_engine(500.0, plants=[("NUCLEAR", 1000), ("SOLAR", 100, 0.8)])
    snapshots = engine.run(get_blackout_time())

    # day 2, 07:00
    daylight = snapshots[1860]
    assert daylight.time == minute_after_blackout(1860)
    assert daylight.generated_by_type["Solar"] == pytest.approx(80.0)
    assert daylight.generated_by_type["Nuclear"] == pytest.approx(420.0)
    assert daylight.stability == pytest.approx(0.856)
    assert daylight.generated_power_mw == pytest.approx(500.0)

    # day 2, 06:59 and 01:00: solar outside its window
    for minute in (1859, 1500):
        assert dict(snapshots[minute].generated_by_type) == {"Nuclear": 500.0}

    assert engine.get_plant(1).state == PlantState.ONLINE


def test_renewables_are_curtailed_and_nuclear_takes_the_freed_demand():
    engine = get_engine(500.0, plants=[("NUCLEAR", 1000), ("WIND", 600)])
    snapshots = engine.run(get_blackout_time())

    # wind alone would give stability 0.2, so it is disconnected
    assert snapshots[100].generated_power_mw == 0.0
    assert snapshots[100].stability == 1.0

    after_restart = snapshots[1500]
    assert dict(after_restart.generated_by_type) == {"Nuclear": 500.0}
    assert after_restart.stability == 1.0
    assert engine.get_plant(1).state == PlantState.IDLE
    assert engine.get_plant(1).assigned_output_mw == 0.0


def test_nuclear_top_up_targets_the_demand_freed_by_curtailment():
    engine = get_engine(500.0, plants=[("NUCLEAR", 1000), ("WIND", 400)])
    snapshots = engine.run(get_blackout_time())

    # allocation gives wind 400 + nuclear 100, wind is curtailed and the
    # top-up asks nuclear for the 400 MW freed
    snapshot = snapshots[1500]
    assert dict(snapshot.generated_by_type) == {"Nuclear": 400.0}
    assert snapshot.unserved_power_mw == pytest.approx(100.0)


def test_thermal_plants_are_not_revisited_after_curtailment():
    engine = get_engine(500.0, plants=[("WIND", 600), ("COAL", 1000)])
    snapshots = engine.run(get_blackout_time())

    snapshot = snapshots[600]
    assert snapshot.generated_power_mw == 0.0
    assert snapshot.unserved_power_mw == 500.0
    assert engine.get_plant(1).state == PlantState.IDLE


def test_thermal_tier_is_dispatched_by_id():
    engine = get_engine(500.0, plants=[("COAL", 300), ("COMBINED_CYCLE", 1000)])
    snapshots = engine.run(get_blackout_time())

    assert snapshots[120].generated_power_mw == 0.0
    assert dict(snapshots[121].generated_by_type) == {"Combined cycle": 500.0}

    both = snapshots[481]
    assert dict(both.generated_by_type) == {"Coal": 300.0, "Combined cycle": 200.0}
    assert both.stability == pytest.approx(0.82)


def test_curtailment_tie_break_disconnects_highest_id_first():
    engine = get_engine(500.0, plants=[("HYDRO", 400), ("WIND", 50), ("WIND", 50)])
    snapshots = engine.run(get_blackout_time())

    last = snapshots[-1]
    assert last.generated_power_mw == pytest.approx(450.0)
    assert last.stability == pytest.approx(330.0 / 450.0)
    assert dict(last.generated_by_type) == {"Hydroelectric": 400.0, "Wind": 50.0}
    assert engine.get_plant(1).state == PlantState.ONLINE
    assert engine.get_plant(2).state == PlantState.IDLE


def test_unrecoverable_stability_is_reported(caplog):
    engine = get_engine(500.0, plants=[("BIOMASS", 1000)])
    with caplog.at_level(logging.WARNING):
        snapshots = engine.run(get_blackout_time())

    assert snapshots[181].stability == pytest.approx(0.5)
    assert "1979 minutes" in caplog.text


def test_restoration_milestones_are_logged_at_debug(caplog):
    engine = get_engine(500.0, plants=[("NUCLEAR", 1000), ("SOLAR", 100, 0.8)])
    with caplog.at_level(logging.DEBUG):
        engine.run(get_blackout_time())

    online = [r.getMessage() for r in caplog.records if "back online" in r.getMessage()]
    assert len(online) == 2
    # day 1 solar output is curtailed, it first delivers power on day 2 at 07:00
    assert online[0].startswith(f"{minute_after_blackout(1441)}: Nuclear plant #0")
    assert online[1].startswith(f"{minute_after_blackout(1860)}: Solar plant #1")

    served = [r.getMessage() for r in caplog.records if "fully served" in r.getMessage()]
    assert len(served) == 1
    assert served[0].startswith(f"{minute_after_blackout(1441)}: demand of 500.00 MW")


def test_rerun_discards_previous_results():
    engine = get_engine(plants=[("HYDRO", 100)])
    engine.run(get_blackout_time())
    second_blackout = datetime(2025, 6, 1, 15, 0)
    engine.run(second_blackout)

    assert len(engine.simulation_results) == 2160
    assert engine.simulation_results[0].time == second_blackout
    assert len(engine.plants) == 1


# ---------------------------------------------------------------------------------
# Properties over a realistic roster
# ---------------------------------------------------------------------------------

@pytest.fixture(scope="module")
def test_case_engine():
    return build_engine(load_data(get_test_data_path()))


def test_runs_are_deterministic(test_case_engine):
    blackout = datetime(2025, 4, 28, 12, 33)
    first = test_case_engine.run(blackout)
    second = test_case_engine.run(blackout)
    assert first == second


def test_generation_never_exceeds_capacity_and_stability_is_bounded(test_case_engine):
    capacity = {}
    for plant in test_case_engine.plants:
        capacity[plant.type_label] = capacity.get(plant.type_label, 0.0) + plant.max_power_output()

    for snapshot in test_case_engine.run(datetime(2025, 4, 28, 12, 33)):
        assert 0.0 <= snapshot.stability <= 1.0
        if snapshot.generated_power_mw == 0:
            assert snapshot.stability == 1.0
        for label, output in snapshot.generated_by_type.items():
            assert output <= capacity[label] + 1e-9
        assert snapshot.generated_power_mw == pytest.approx(sum(snapshot.generated_by_type.values()))


@pytest.mark.parametrize("blackout", [
    datetime(2025, 4, 28, 12, 33),
    datetime(2025, 6, 1, 6, 59),
    datetime(2025, 3, 3, 18, 58, 45),
])
def test_plant_states_are_consistent_every_minute(test_case_engine, monkeypatch, blackout):
    checked_minutes = []

    def check_then_build(current_time, demand_mw, plants):
        for plant in plants:
            assert 0.0 <= plant.assigned_output_mw <= plant.max_power_output() + 1e-9
            if plant.is_renewable:
                assert plant.assigned_output_mw <= plant.max_capacity_mw * plant.efficiency + 1e-9
            if plant.assigned_output_mw > 0:
                assert plant.state == PlantState.ONLINE
            eligible = plant.is_available(blackout, current_time)
            assert (plant.state == PlantState.UNAVAILABLE) == (not eligible)
            if plant.state == PlantState.UNAVAILABLE:
                assert plant.assigned_output_mw == 0.0
        checked_minutes.append(current_time)
        return build_minute_snapshot(current_time, demand_mw, plants)

    monkeypatch.setattr(simulation_main, "build_minute_snapshot", check_then_build)
    snapshots = test_case_engine.run(blackout)

    assert len(checked_minutes) == 2160
    assert checked_minutes == [s.time for s in snapshots]



# ---------------------------------------------------------------------------------
# Dispatch helpers
# ---------------------------------------------------------------------------------

def make_roster(*families):
    return [
        PowerPlant(id=i, family=family, name=f"P{i}", latitude=0, longitude=0, city="X", max_capacity_mw=100)
        for i, family in enumerate(families)
    ]


def test_priority_tiers_order():
    roster = make_roster("COAL", "WIND", "NUCLEAR", "HYDRO", "SOLAR", "BIOMASS", "NUCLEAR", "WIND")
    tiers = build_priority_tiers(roster)
    assert [p.id for p in tiers.renewables] == [3, 1, 7, 4]
    assert [p.id for p in tiers.nuclear] == [2, 6]
    assert [p.id for p in tiers.thermal] == [0, 5]


def test_stability_of_an_idle_grid_is_one():
    assert calculate_stability(make_roster("WIND", "COAL")) == 1.0


def test_curtailment_stops_when_no_online_renewable_remains():
    roster = make_roster("WIND", "SOLAR", "WIND")
    blackout = get_blackout_time()
    reset_plants_for_minute(roster, blackout, blackout + timedelta(hours=12))
    remaining = allocate_by_priority(build_priority_tiers(roster), 250.0)
    assert remaining == 0.0

    remaining, stability = curtail_renewables(roster, calculate_stability(roster), remaining)
    assert remaining == 250.0
    assert stability == 1.0
    assert all(p.state == PlantState.IDLE for p in roster)


# ---------------------------------------------------------------------------------
# Profiling
# ---------------------------------------------------------------------------------

def test_profiled_run_records_every_phase():
    engine = RecoveryEngine(DemandForecast.constant(100.0), profile=True)
    engine.add_plant("HYDRO", "Aldeadavila", 41.2, -6.7, "Aldeadavila", 200, 0.9)
    engine.run(get_blackout_time())

    phases = engine.profiler.phases
    assert list(phases) == ["Availability", "Allocation", "Curtailment", "Nuclear top-up", "Snapshot"]
    assert all(phase.calls == 2160 for phase in phases.values())
    assert engine.profiler.wall_time_seconds > 0


def test_unprofiled_run_records_nothing():
    engine = get_engine(plants=[("HYDRO", 100)])
    engine.run(get_blackout_time())
    assert engine.profiler.phases == {}
