"""
Cycle summary formatting for Janitarr.
"""

from datetime import timedelta
from typing import Dict, List

from .detector import summarize
from ..models import CycleResult, DetectionResult

RULE = "-" * 40


def format_duration(duration: timedelta) -> str:
    seconds = duration.total_seconds()
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    return f"{minutes}m{secs}s"


def format_cycle_result(result: CycleResult) -> str:
    """Human-readable multi-line summary of a finished cycle."""
    detection = summarize(result.detection_results)
    mode = " (dry run)" if result.is_dry_run else ""
    lines: List[str] = [
        f"Automation cycle finished in {format_duration(result.duration)}{mode}",
        RULE,
        "Detection:",
        f"  Servers scanned:    {len(result.detection_results)}",
        f"  Successful:         {detection.success_count}",
        f"  Failed:             {detection.failure_count}",
        f"  Missing items:      {detection.total_missing}",
        f"  Cutoff unmet items: {detection.total_cutoff}",
    ]
    for res in result.detection_results.values():
        if not res.ok:
            lines.append(f"    - {res.server.name} ({res.server.type.value}): {res.error}")

    lines += ["", "Searches:"]
    for category, counts in result.per_category_counts.items():
        lines.append(f"  {category.label + ':':<20}{counts.triggered} triggered, "
                     f"{counts.failed} failed (of {counts.planned})")
    lines.append(f"  {'Total:':<20}{result.total_triggered} triggered, {result.total_failed} failed")

    lines.append("")
    if result.cancelled:
        lines.append("Status: CANCELLED")
    elif result.failed:
        lines.append("Status: FAILED")
    else:
        lines.append("Status: SUCCESS")
    for error in result.errors:
        lines.append(f"  - {error}")
    lines.append(RULE)
    return "\n".join(lines) + "\n"


def format_scan_results(results: Dict[str, DetectionResult]) -> str:
    """Detection-only report for `janitarr scan`."""
    if not results:
        return "No servers configured or enabled for scanning.\n"
    summary = summarize(results)
    lines: List[str] = [
        "Scan results:",
        RULE,
        f"  Successful scans:   {summary.success_count}",
        f"  Failed scans:       {summary.failure_count}",
        f"  Missing items:      {summary.total_missing}",
        f"  Cutoff unmet items: {summary.total_cutoff}",
        "",
    ]
    for res in results.values():
        name = f"{res.server.name} ({res.server.type.value})"
        if res.ok:
            lines.append(f"  {name}: {len(res.missing_items)} missing, "
                         f"{len(res.cutoff_items)} cutoff unmet")
        else:
            lines.append(f"  {name}: scan failed: {res.error}")
    lines.append(RULE)
    return "\n".join(lines) + "\n"
