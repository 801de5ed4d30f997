"""Host metrics for the status message (RAM, CPU load, disks, uptime)."""

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional


class SystemStatusCollector:
    """Collects a host snapshot. Every probe degrades to None instead of raising."""

    def __init__(self, disk_paths: Iterable[str] = ("/",), proc_dir: str = "/proc"):
        self.disk_paths = tuple(disk_paths)
        self._proc = Path(proc_dir)

    def memory(self) -> Optional[Dict[str, int]]:
        """Used/total memory in MiB, from /proc/meminfo."""
        try:
            fields = {}
            for line in (self._proc / "meminfo").read_text().splitlines():
                key, _, rest = line.partition(":")
                parts = rest.split()
                if parts:
                    fields[key] = int(parts[0])  # kB
            total = fields["MemTotal"]
            available = fields.get("MemAvailable", fields.get("MemFree", 0))
            return {"used_mib": (total - available) // 1024, "total_mib": total // 1024}
        except (OSError, KeyError, ValueError):
            return None

    def cpu(self) -> Optional[Dict[str, Any]]:
        try:
            load1, load5, load15 = os.getloadavg()
        except (OSError, AttributeError):
            return None
        return {"load": (load1, load5, load15), "cores": os.cpu_count() or 1}

    def uptime(self) -> Optional[float]:
        try:
            return float((self._proc / "uptime").read_text().split()[0])
        except (OSError, ValueError, IndexError):
            return None

    def disks(self) -> List[Dict[str, Any]]:
        result = []
        for path in self.disk_paths:
            try:
                usage = shutil.disk_usage(path)
            except OSError:
                continue
            result.append({"path": path, "used": usage.used, "total": usage.total})
        return result


def format_uptime(seconds: float) -> str:
    minutes, _ = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    if days:
        return f"{days}d {hours}h {minutes}m"
    return f"{hours}h {minutes}m"


def build_status_message(
    collector: SystemStatusCollector,
    bridge_stats: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> str:
    """Render the status snapshot posted to the status channel and /status."""
    lines = ["**System Status**"]

    mem = collector.memory()
    if mem and mem["total_mib"]:
        pct = mem["used_mib"] * 100 / mem["total_mib"]
        lines.append(f"**RAM Usage:** `{pct:.1f}%` (`{mem['used_mib']} MiB / {mem['total_mib']} MiB`)")
    else:
        lines.append("**RAM Usage:** `unavailable`")

    cpu = collector.cpu()
    if cpu:
        l1, l5, l15 = cpu["load"]
        lines.append(f"**CPU Load:** `{l1:.2f} / {l5:.2f} / {l15:.2f}` over {cpu['cores']} cores")
    else:
        lines.append("**CPU Load:** `unavailable`")

    up = collector.uptime()
    if up is not None:
        lines.append(f"**Uptime:** `{format_uptime(up)}`")

    disks = collector.disks()
    if disks:
        lines.append("**Disks:**")
        for d in disks:
            used_gb = d["used"] / 1e9
            total_gb = d["total"] / 1e9
            pct = d["used"] * 100 / d["total"] if d["total"] else 0.0
            lines.append(f"`{d['path']}`: `{used_gb:.1f} GB / {total_gb:.1f} GB` ({pct:.1f}%)")

    if bridge_stats is not None:
        lines.append(
            f"**Bridge:** `{bridge_stats.get('pending', 0)} pending, "
            f"{bridge_stats.get('delivered', 0)} delivered, "
            f"{bridge_stats.get('failed', 0)} failed`"
        )

    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M UTC")
    lines.append(f"_Updated {stamp}_")
    return "\n".join(lines)


def status_composer(collector: SystemStatusCollector,
                    stats: Optional[Callable[[], Dict[str, Any]]] = None) -> Callable[[], str]:
    """Bind a collector (and optional stats source) into a zero-arg compose function."""
    def compose() -> str:
        return build_status_message(collector, stats() if stats else None)
    return compose
