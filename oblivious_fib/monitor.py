"""
Stage timing with peak CPU / RAM sampling.
"""

import os
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator

import psutil


class ResourceMonitor:
    def __init__(self, interval=0.01):
        self.interval = interval
        self.running = False
        self.peak_cpu = 0.0
        self.peak_ram = 0.0
        self.thread = None
        self._process = psutil.Process(os.getpid())

    def start(self):
        self.running = True
        self.peak_cpu = 0.0
        self.peak_ram = 0.0
        # first call only primes the counter
        self._process.cpu_percent(interval=None)

        self.thread = threading.Thread(target=self._monitor_loop, daemon=True)
        self.thread.start()

    def stop(self):
        self.running = False
        if self.thread:
            self.thread.join()
        return self.peak_cpu, self.peak_ram

    def _monitor_loop(self):
        while self.running:
            try:
                cpu = self._process.cpu_percent(interval=None)
                rss_mb = self._process.memory_info().rss / (1024 * 1024)
            except psutil.Error:
                break

            self.peak_cpu = max(self.peak_cpu, cpu)
            self.peak_ram = max(self.peak_ram, rss_mb)
            time.sleep(self.interval)


@dataclass
class StageMetrics:
    seconds: float = 0.0
    peak_cpu: float = 0.0
    peak_ram_mb: float = 0.0

    @property
    def millis(self) -> float:
        return self.seconds * 1000


class StageTimer:
    """Collects one StageMetrics per named stage, in run order."""

    def __init__(self, interval=0.01):
        self.monitor = ResourceMonitor(interval)
        self.stages: Dict[str, StageMetrics] = {}

    @contextmanager
    def stage(self, name: str) -> Iterator[StageMetrics]:
        metrics = StageMetrics()
        self.monitor.start()
        t_start = time.perf_counter()
        try:
            yield metrics
        finally:
            metrics.seconds = time.perf_counter() - t_start
            metrics.peak_cpu, metrics.peak_ram_mb = self.monitor.stop()
            self.stages[name] = metrics

    def format_table(self) -> str:
        return format_stage_table(self.stages)


def format_stage_table(stages: Dict[str, StageMetrics]) -> str:
    lines = [
        "=" * 70,
        f"{'STAGE':<15} | {'TIME (ms)':<12} | {'PEAK CPU %':<12} | {'PEAK RAM (MB)':<15}",
        "-" * 70,
    ]
    for stage, m in stages.items():
        lines.append(f"{stage:<15} | {m.millis:<12.2f} | {m.peak_cpu:<12.1f} | {m.peak_ram_mb:<15.1f}")
    lines.append("=" * 70)
    return "\n".join(lines)
