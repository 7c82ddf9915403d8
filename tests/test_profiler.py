import logging

from grid_restore.utils_performance_meassure import PhaseProfile, RunProfiler


def test_measure_step_accumulates_per_phase():
    profiler = RunProfiler()
    profiler.start()
    for minute in range(3):
        assert profiler.measure_step("Allocation", lambda x: x * 2, minute) == minute * 2
    profiler.measure_step("Snapshot", sum, [1, 2, 3])
    profiler.stop()

    assert list(profiler.phases) == ["Allocation", "Snapshot"]
    assert profiler.phases["Allocation"].calls == 3
    assert profiler.get_total_time() >= profiler.phases["Allocation"].time_seconds
    assert profiler.wall_time_seconds >= 0


def test_disabled_profiler_just_calls_through():
    profiler = RunProfiler(enabled=False)
    profiler.start()
    assert profiler.measure_step("Allocation", max, 4, 9) == 9
    profiler.stop()
    assert profiler.phases == {}
    assert profiler.get_summary_dict()["phases"] == []


def test_memory_tracking():
    profiler = RunProfiler(track_memory=True)
    profiler.start()
    profiler.measure_step("Snapshot", lambda: [0] * 100000)
    profiler.stop()
    assert profiler.phases["Snapshot"].memory_peak_bytes > 0


def test_mean_time_of_unused_phase_is_zero():
    assert PhaseProfile("Curtailment").mean_time_seconds == 0.0


def test_summary_dict_and_table(caplog):
    profiler = RunProfiler()
    profiler.start()
    profiler.measure_step("Curtailment", lambda: None)
    profiler.stop()

    summary = profiler.get_summary_dict()
    assert summary["phases"][0]["phase_name"] == "Curtailment"
    assert summary["phases"][0]["calls"] == 1
    assert set(summary) == {"phases", "total_time_seconds", "total_memory_bytes", "wall_time_seconds"}

    with caplog.at_level(logging.INFO):
        profiler.print_summary_table(logger=logging.getLogger("grid_restore.tests"))
    assert "RECOVERY RUN PROFILING SUMMARY" in caplog.text
    assert "Curtailment" in caplog.text


def test_summary_dataframe_lists_phases_in_first_seen_order():
    profiler = RunProfiler()
    profiler.start()
    for _ in range(4):
        profiler.measure_step("Availability", lambda: None)
        profiler.measure_step("Allocation", lambda: None)
    profiler.stop()

    summary = profiler.get_summary_dataframe()
    assert summary.index.tolist() == ["Availability", "Allocation"]
    assert summary["Calls"].tolist() == [4, 4]
    assert list(summary.columns) == ["Calls", "Time (s)", "Share (%)", "Mean (us)", "Allocated"]


def test_memory_is_formatted_in_binary_units():
    assert RunProfiler._format_memory(512) == "512 B"
    assert RunProfiler._format_memory(1536) == "1.5 KiB"
    assert RunProfiler._format_memory(3 * 1024 * 1024) == "3.0 MiB"
    assert RunProfiler._format_memory(5 * 1024 ** 3) == "5120.0 MiB"
