"""Output stage: console alerts by severity tier and the append-only alert log."""
from .commons import ALERT_THRESHOLD, ScoreReport, Severity
from datetime import datetime
from typing import Callable, Optional

from rich.console import Console
from rich.text import Text
from rich.theme import Theme

PHISHWATCH_THEME = Theme(
    {
        "pw.banner": "bold dim",
        "pw.high": "bold red",
        "pw.medium": "magenta",
        "pw.low": "yellow",
        "pw.score": "dim",
        "pw.error": "bold red",
    }
)

LOG_TIMESTAMP_FORMAT: str = "[%Y-%m-%d][%H:%M:%S]"


def create_console(*, stderr: bool = False, no_color: bool = False) -> Console:
    return Console(theme=PHISHWATCH_THEME, stderr=stderr, no_color=no_color, highlight=False)


class Output:
    """Prints suspicious domains and appends them to the alert log file."""

    def __init__(
        self,
        log_path: str,
        console: Optional[Console] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.log_path = log_path
        self.console = console or create_console()
        self.clock = clock

    def banner(self) -> None:
        self.console.print(Text.assemble(("[PhishWatch]", "pw.banner"), " Fetching certificates ..."))

    def report(self, report: ScoreReport) -> Optional[Severity]:
        """Emit a scored domain if it reaches an alert tier.

        Args:
            report: Final score for one domain.

        Returns:
            Optional[Severity]: The tier it was shown under, or None.
        """
        severity: Optional[Severity] = report.severity
        if severity is not None:
            self.console.print(self.format_console(report, severity))
        if report.score >= ALERT_THRESHOLD:
            self.append(self.format_log(report))
        return severity

    @staticmethod
    def format_console(report: ScoreReport, severity: Severity) -> Text:
        line = Text.assemble(
            "Suspicious ",
            (report.normalized_domain, f"pw.{severity.value}"),
            " ",
            (f"(score {report.score})", "pw.score"),
        )
        if report.is_punycode:
            line.append(f" (Punycode: {report.raw_domain})")
        return line

    def format_log(self, report: ScoreReport) -> str:
        stamp: str = self.clock().strftime(LOG_TIMESTAMP_FORMAT)
        if report.is_punycode:
            return f"{stamp} {report.normalized_domain} - (Punycode: {report.raw_domain})"
        return f"{stamp} {report.normalized_domain}"

    def append(self, line: str) -> None:
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(line.strip() + "\n")
