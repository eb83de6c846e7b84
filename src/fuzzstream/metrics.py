"""
Byte accounting and emission statistics.

Exposes Prometheus metrics for:
- Bytes accepted from upstream and emitted downstream
- Emitted chunk and combine counts
- Induced delay distribution

Each transform also keeps its own EmissionCollector so a single session can
be inspected after the fact.
"""

import csv
import time
from collections import defaultdict
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List

import numpy as np
from prometheus_client import CollectorRegistry, Counter, Histogram

# Create a registry for fuzzstream metrics
REGISTRY = CollectorRegistry()

BYTES_ACCEPTED_TOTAL = Counter(
    'fuzzstream_bytes_accepted_total',
    'Total bytes accepted from upstream writers',
    registry=REGISTRY
)

BYTES_EMITTED_TOTAL = Counter(
    'fuzzstream_bytes_emitted_total',
    'Total bytes pushed downstream',
    registry=REGISTRY
)

CHUNKS_EMITTED_TOTAL = Counter(
    'fuzzstream_chunks_emitted_total',
    'Total chunks pushed downstream, including empty ones',
    registry=REGISTRY
)

COMBINES_TOTAL = Counter(
    'fuzzstream_combines_total',
    'Total writes held back to be combined with the next one',
    registry=REGISTRY
)

DELAY_MS = Histogram(
    'fuzzstream_delay_ms',
    'Delay induced before each emitted chunk',
    buckets=(0, 1, 5, 10, 50, 100, 500, 1000, 2000, 3000),
    registry=REGISTRY
)


@dataclass
class EmissionRecord:
    """One chunk pushed downstream."""

    timestamp: float  # Unix timestamp
    index: int  # Position in the output sequence
    size: int  # Bytes in the chunk
    delay_ms: int  # Delay waited before the push


class EmissionCollector:
    """Captures every emitted chunk of one stream session."""

    def __init__(self):
        """Initialize collector with empty records."""
        self.records: List[EmissionRecord] = []
        self._start_time = time.time()
        self._counts: Dict[str, int] = defaultdict(int)

    def record_emission(self, size: int, delay_ms: int) -> None:
        """
        Record a chunk pushed downstream.

        Args:
            size: Chunk length in bytes
            delay_ms: Delay that preceded it
        """
        self.records.append(EmissionRecord(
            timestamp=time.time(),
            index=len(self.records),
            size=size,
            delay_ms=delay_ms,
        ))
        self._counts["chunks"] += 1
        if size == 0:
            self._counts["empty_chunks"] += 1
        if delay_ms == 0:
            self._counts["immediate"] += 1

        CHUNKS_EMITTED_TOTAL.inc()
        BYTES_EMITTED_TOTAL.inc(size)
        DELAY_MS.observe(delay_ms)

    def record_combine(self) -> None:
        """Record a write held back for combination."""
        self._counts["combines"] += 1
        COMBINES_TOTAL.inc()

    def get_stats(self) -> Dict[str, Any]:
        """
        Calculate aggregate chunk size and delay statistics.

        Returns:
            Dict with ``size`` and ``delay_ms`` sections (count, mean, p50, p95,
            max, min), empty when nothing was recorded
        """
        if not self.records:
            return {}

        stats = {}
        for field in ("size", "delay_ms"):
            values = np.array([getattr(r, field) for r in self.records], dtype=float)
            stats[field] = {
                "count": int(values.size),
                "mean": float(values.mean()),
                "p50": float(np.percentile(values, 50)),
                "p95": float(np.percentile(values, 95)),
                "max": float(values.max()),
                "min": float(values.min()),
            }
        return stats

    def get_summary(self) -> Dict[str, Any]:
        """
        Get human-readable summary.

        Returns:
            Dict with totals, event counts and statistics
        """
        if not self.records:
            return {"total_chunks": 0, "total_bytes": 0, "counts": dict(self._counts)}

        return {
            "total_chunks": len(self.records),
            "total_bytes": sum(r.size for r in self.records),
            "total_delay_ms": sum(r.delay_ms for r in self.records),
            "elapsed_s": round(time.time() - self._start_time, 3),
            "counts": dict(self._counts),
            "stats": self.get_stats(),
        }

    def export_csv(self, filename: str) -> None:
        """
        Export raw records to CSV.

        Args:
            filename: Path to output CSV file
        """
        Path(filename).parent.mkdir(parents=True, exist_ok=True)

        with open(filename, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=["timestamp", "index", "size", "delay_ms"])
            writer.writeheader()
            for r in self.records:
                writer.writerow(asdict(r))

    def reset(self) -> None:
        """Clear all records."""
        self.records.clear()
        self._counts.clear()

    def __len__(self) -> int:
        """Return number of records."""
        return len(self.records)
