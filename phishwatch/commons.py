"""Shared pipeline primitives: severity tiers, stream messages, domain records, and errors."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class Severity(Enum):
    """Alert tiers, highest first"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def threshold(self) -> int:
        return _THRESHOLDS[self]

    @staticmethod
    def for_score(score: int) -> Optional["Severity"]:
        """Return the tier a score falls in, or None below the lowest threshold."""
        for severity in Severity:
            if score >= severity.threshold:
                return severity
        return None


_THRESHOLDS = {
    Severity.HIGH: 76,
    Severity.MEDIUM: 68,
    Severity.LOW: 56,
}

ALERT_THRESHOLD: int = _THRESHOLDS[Severity.LOW]


# ---- Errors ----

class PhishWatchError(Exception):
    """Base class for pipeline errors."""


class MalformedMessageError(PhishWatchError, ValueError):
    """A stream payload could not be decoded or did not match the expected schema."""


class SuffixListError(PhishWatchError, RuntimeError):
    """The public suffix list could not be loaded at startup."""


# ---- Stream messages ----

@dataclass(frozen=True)
class Heartbeat:
    """Keep-alive frame from the stream; carries nothing."""


@dataclass(frozen=True)
class CertificateUpdate:
    """A newly logged certificate and its subject-alternative-name domains."""
    domains: Tuple[str, ...]


# ---- Domain records ----

@dataclass(frozen=True)
class NormalizedDomain:
    """A certificate domain alongside its comparison form.

    raw: the domain as received.
    ascii: raw with one leading wildcard marker removed.
    normalized: ascii with every punycode label decoded.
    punycode_labels: labels of ascii still carrying the xn-- prefix.
    """
    raw: str
    ascii: str
    normalized: str
    punycode_labels: int

    @property
    def labels(self) -> list[str]:
        return self.normalized.split(".")

    @property
    def is_punycode(self) -> bool:
        return self.punycode_labels > 0


@dataclass(frozen=True)
class DomainParts:
    """Registrable root and residual subdomain of a normalized domain."""
    root: str
    subdomain: str

    @property
    def root_label(self) -> str:
        return self.root.split(".")[0]

    @property
    def subdomain_label(self) -> str:
        """First subdomain label, or "" when there is no subdomain."""
        return self.subdomain.split(".")[0] if self.subdomain else ""


@dataclass(frozen=True)
class HeuristicResults:
    """Contribution of one heuristic to a domain's score."""
    name: str
    score: int
    evidence: str = ""


@dataclass(frozen=True)
class ScoreReport:
    """Final score for one domain; reported then discarded."""
    score: int
    normalized_domain: str
    raw_domain: str
    evidence: Tuple[HeuristicResults, ...] = field(default=())

    @property
    def is_punycode(self) -> bool:
        return "xn--" in self.raw_domain

    @property
    def severity(self) -> Optional[Severity]:
        return Severity.for_score(self.score)
