"""Aggregate reporting over the locator cache and resolver metrics."""

from collections import Counter
from dataclasses import asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..core.logging_config import get_healing_logger
from ..core.metrics import MetricsCollector
from ..core.models.healing_models import utc_now
from .locator_cache import LocatorCache

logger = get_healing_logger("statistics")


class StatisticsReporter:
    """Derives hit-rate, age and reliability figures from a LocatorCache."""

    def __init__(self, cache: LocatorCache, metrics: Optional[MetricsCollector] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            cache: Cache to report on
            metrics: Optional collector whose summary is included in reports
            clock: Returns the current UTC time; injectable for tests
        """
        self.cache = cache
        self.metrics = metrics
        self.clock = clock or utc_now

    def build_report(self) -> Dict[str, Any]:
        """Build a report combining cache statistics with per-entry aggregates."""
        stats = self.cache.get_statistics()
        entries = list(self.cache.get_all_entries().values())
        now = self.clock()

        ages = [entry.age_seconds(now) / 3600.0 for entry in entries]
        strategies = Counter(entry.strategy.value for entry in entries)
        unreliable: List[str] = sorted(
            entry.key for entry in entries if entry.failure_count > entry.success_count
        )

        report = asdict(stats)
        report.update({
            "oldest_age_hours": round(max(ages), 2) if ages else None,
            "newest_age_hours": round(min(ages), 2) if ages else None,
            "average_age_hours": round(sum(ages) / len(ages), 2) if ages else None,
            "entries_by_strategy": dict(sorted(strategies.items())),
            "total_successes": sum(entry.success_count for entry in entries),
            "total_failures": sum(entry.failure_count for entry in entries),
            "unreliable_entries": unreliable
        })

        if self.metrics is not None:
            report["metrics"] = self.metrics.get_summary()

        return report

    def format_report(self, report: Optional[Dict[str, Any]] = None) -> str:
        """Render a report as a human-readable block of text."""
        report = report or self.build_report()

        lines = [
            "Locator cache statistics",
            f"  Entries:        {report['total_entries']}",
            f"  Hit rate:       {report['hit_rate']:.2f}% "
            f"({report['total_hits']} hits, {report['total_misses']} misses)",
            f"  Oldest entry:   {report['oldest_entry'] or '-'}",
            f"  Newest entry:   {report['newest_entry'] or '-'}",
        ]

        if report["average_age_hours"] is not None:
            lines.append(
                f"  Age (hours):    avg {report['average_age_hours']:.2f}, "
                f"min {report['newest_age_hours']:.2f}, max {report['oldest_age_hours']:.2f}"
            )

        if report["entries_by_strategy"]:
            by_strategy = ", ".join(f"{name}={count}" for name, count in report["entries_by_strategy"].items())
            lines.append(f"  By strategy:    {by_strategy}")

        lines.append(f"  Validations:    {report['total_successes']} succeeded, {report['total_failures']} failed")

        if report["unreliable_entries"]:
            lines.append("  Unreliable entries:")
            lines.extend(f"    - {key}" for key in report["unreliable_entries"])

        counters = report.get("metrics", {}).get("counters", {})
        if counters:
            lines.append("  Counters:")
            lines.extend(f"    {name}: {value}" for name, value in sorted(counters.items()))

        return "\n".join(lines)

    def log_report(self) -> Dict[str, Any]:
        """Log the formatted report and return the underlying data."""
        report = self.build_report()
        logger.info(self.format_report(report), extra={
            'operation': 'statistics',
            'metadata': {'total_entries': report['total_entries'], 'hit_rate': report['hit_rate']}
        })
        return report
