"""
Performance measurement utilities for grid_restore simulation runs.

A recovery run repeats the same handful of phases (availability check,
allocation, curtailment, nuclear top-up, snapshot) once per simulated minute.
The profiler here accumulates time and memory per phase name across all those
repetitions so the summary shows where a 2160-minute run spends its time.
"""

import logging
import time
import tracemalloc
from dataclasses import dataclass, field
from typing import Dict, Optional, Callable, Any

import pandas as pd


@dataclass
class PhaseProfile:
    """Accumulated profiling data for one named phase."""
    phase_name: str
    calls: int = 0
    time_seconds: float = 0.0
    memory_bytes: int = 0
    memory_peak_bytes: int = 0

    @property
    def mean_time_seconds(self) -> float:
        return self.time_seconds / self.calls if self.calls else 0.0


@dataclass
class RunProfiler:
    """
    Profiler for tracking time (and optionally memory) per phase of a run.

    Attributes:
        phases (Dict[str, PhaseProfile]): Accumulated data keyed by phase name,
            in first-seen order.
        track_memory (bool): Whether to trace memory allocation. Tracing slows
            a full run down noticeably, so it is off by default.
        enabled (bool): Whether profiling is enabled. When disabled,
            measure_step simply executes the function without measuring.

    Example:
        >>> profiler = RunProfiler(enabled=True)
        >>> profiler.start()
        >>> for minute in range(3):
        ...     profiler.measure_step("Allocation", allocate, demand)
        >>> profiler.stop()
        >>> profiler.print_summary_table()
    """
    phases: Dict[str, PhaseProfile] = field(default_factory=dict)
    track_memory: bool = False
    enabled: bool = True
    _start_time: float = field(default=0.0, repr=False)
    _elapsed: float = field(default=0.0, repr=False)
    _tracemalloc_started: bool = field(default=False, repr=False)

    def start(self):
        """Start the profiler and initialize memory tracking if enabled."""
        if not self.enabled:
            return
        if self.track_memory and not tracemalloc.is_tracing():
            tracemalloc.start()
            self._tracemalloc_started = True
        self._start_time = time.perf_counter()

    def stop(self):
        """Stop the profiler, record the wall time and clean up memory tracking."""
        if self.enabled and self._start_time:
            self._elapsed = time.perf_counter() - self._start_time
        if self._tracemalloc_started:
            tracemalloc.stop()
            self._tracemalloc_started = False

    def measure_step(self, phase_name: str, func: Callable, *args, **kwargs) -> Any:
        """
        Run ``func`` and add its time and memory to the totals of ``phase_name``.

        Args:
            phase_name (str): Phase the call belongs to.
            func (callable): Function to execute and measure.
            *args: Positional arguments to pass to the function.
            **kwargs: Keyword arguments to pass to the function.

        Returns:
            The return value of the executed function.
        """
        if not self.enabled:
            return func(*args, **kwargs)

        tracing = self.track_memory and tracemalloc.is_tracing()
        if tracing:
            tracemalloc.reset_peak()
            mem_before = tracemalloc.get_traced_memory()[0]

        start_time = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed_time = time.perf_counter() - start_time

        phase = self.phases.get(phase_name)
        if phase is None:
            phase = self.phases[phase_name] = PhaseProfile(phase_name=phase_name)
        phase.calls += 1
        phase.time_seconds += elapsed_time

        if tracing:
            mem_current, mem_peak = tracemalloc.get_traced_memory()
            phase.memory_bytes += max(0, mem_current - mem_before)
            phase.memory_peak_bytes = max(phase.memory_peak_bytes, mem_peak)

        return result

    def get_total_time(self) -> float:
        """Return total time across all measured phases."""
        return sum(phase.time_seconds for phase in self.phases.values())

    def get_total_memory(self) -> int:
        """Return total memory allocated across all measured phases."""
        return sum(phase.memory_bytes for phase in self.phases.values())

    @property
    def wall_time_seconds(self) -> float:
        return self._elapsed

    @staticmethod
    def _format_memory(n_bytes: int) -> str:
        size = float(n_bytes)
        for unit in ("B", "KiB", "MiB"):
            if size < 1024 or unit == "MiB":
                break
            size /= 1024
        return f"{int(size)} B" if unit == "B" else f"{size:.1f} {unit}"

    def get_summary_dataframe(self) -> pd.DataFrame:
        """
        Per-phase profiling figures as a DataFrame, one row per phase in first-seen order.

        Columns are ``Calls``, ``Time (s)``, ``Share (%)``, ``Mean (us)`` and
        ``Allocated``; the index holds the phase names.
        """
        total_time = self.get_total_time()
        rows = {
            phase.phase_name: {
                "Calls": phase.calls,
                "Time (s)": round(phase.time_seconds, 4),
                "Share (%)": round(phase.time_seconds / total_time * 100, 1) if total_time > 0 else 0.0,
                "Mean (us)": round(phase.mean_time_seconds * 1e6, 1),
                "Allocated": self._format_memory(phase.memory_bytes),
            }
            for phase in self.phases.values()
        }
        summary = pd.DataFrame.from_dict(rows, orient="index")
        summary.index.name = "Phase"
        return summary

    def print_summary_table(self, logger: Optional[logging.Logger] = None):
        """
        Writes the per-phase table followed by the run totals.

        Args:
            logger (logging.Logger, optional): Logger that receives the table at
                INFO level. If None, the table is printed to stdout.
        """
        if not self.enabled or not self.phases:
            return

        table = self.get_summary_dataframe().to_string()
        rule = "=" * max(len(line) for line in table.splitlines())
        measured = self.get_total_time()
        report = "\n".join([
            rule,
            "RECOVERY RUN PROFILING SUMMARY",
            rule,
            table,
            rule,
            f"Measured {measured:.4f} s of {self._elapsed:.4f} s wall time, "
            f"{self._format_memory(self.get_total_memory())} allocated",
        ])

        if logger:
            logger.info(f"\n{report}")
        else:
            print(report)

    def get_summary_dict(self) -> dict:
        """
        Return profiling data as a dictionary for programmatic access.

        Returns:
            dict: Dictionary with keys:
                - 'phases': List of per-phase data dictionaries
                - 'total_time_seconds': Total time across all phases
                - 'total_memory_bytes': Total memory allocated
                - 'wall_time_seconds': Time between start() and stop()
        """
        total_time = self.get_total_time()

        return {
            'phases': [
                {
                    'phase_name': phase.phase_name,
                    'calls': phase.calls,
                    'time_seconds': phase.time_seconds,
                    'time_percentage': (phase.time_seconds / total_time * 100) if total_time > 0 else 0,
                    'memory_bytes': phase.memory_bytes,
                }
                for phase in self.phases.values()
            ],
            'total_time_seconds': total_time,
            'total_memory_bytes': self.get_total_memory(),
            'wall_time_seconds': self._elapsed,
        }
