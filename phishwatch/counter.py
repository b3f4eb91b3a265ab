"""Counter module to track scored domains per severity and report periodically."""
from .commons import ScoreReport, Severity
from typing import Dict, Optional

import asyncio
import structlog

logger = structlog.get_logger(__name__)

BENIGN: str = "benign"


class Counter:
    """Maintains running counts per outcome; logs them every interval."""

    def __init__(self, interval_s: int) -> None:
        self.interval_s = interval_s
        self.counts: Dict[str, int] = {s.value: 0 for s in Severity}
        self.counts[BENIGN] = 0

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def record(self, report: ScoreReport) -> None:
        severity: Optional[Severity] = report.severity
        self.counts[severity.value if severity else BENIGN] += 1

    def snapshot(self) -> Dict[str, int]:
        return {**self.counts, "total": self.total}

    async def report(self) -> None:
        """Log the counts every interval, forever."""
        while True:
            await asyncio.sleep(self.interval_s)
            logger.info("domains_scored", interval_s=self.interval_s, **self.snapshot())
