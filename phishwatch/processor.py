"""Scoring engine: domain heuristics and the Processor that runs them.

This module provides:
- DomainContext, the per-domain input every heuristic reads.
- HeuristicBase and the concrete heuristics, each an independent,
  non-negative contribution with a fixed weight.
- Processor: normalizes and decomposes each certificate domain, sums the
  heuristic scores, and hands the report to the output stage. Domains of
  one certificate update are scored concurrently on a thread pool.
"""
from .commons import CertificateUpdate, DomainParts, HeuristicResults, NormalizedDomain, ScoreReport
from .counter import Counter
from .decomposer import Decomposer
from .normalizer import Normalizer
from .output import Output

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import asyncio
import structlog
from rapidfuzz.distance import DamerauLevenshtein

logger = structlog.get_logger(__name__)

KEYWORD_BASE: int = 10


@dataclass(frozen=True)
class DomainContext:
    """Everything a heuristic may look at for one domain."""
    domain: NormalizedDomain
    parts: Optional[DomainParts]
    keywords: Tuple[str, ...]


# ---------- Shared utilities for heuristics ----------

class HeuristicUtils:
    """Reusable utility helpers for heuristics."""

    @staticmethod
    def contains(label: str, keyword: str) -> bool:
        """Case-sensitive substring test."""
        return keyword in label

    @staticmethod
    def is_near_miss(label: str, keyword: str) -> bool:
        """True when the label is exactly one edit away from the keyword.

        Edits are insertions, deletions, substitutions and adjacent
        transpositions (Damerau-Levenshtein). Identical strings do not count.
        """
        return DamerauLevenshtein.distance(label, keyword) == 1

    @staticmethod
    def equals_ignore_case(label: str, token: str) -> bool:
        return label.lower() == token.lower()


# ---------- Heuristic base and implementations ----------

class HeuristicBase:
    """Base class for all heuristics."""

    name: str = "heuristic"

    def evaluate(self, ctx: DomainContext) -> HeuristicResults:
        """Evaluate the heuristic against the given domain context.

        Args:
            ctx: Domain context built by the processor.

        Returns:
            HeuristicResults: Contribution (never negative) and evidence.
        """
        raise NotImplementedError


class PunycodeHeuristic(HeuristicBase):
    """Penalize every punycode marker in the undecoded domain."""

    name: str = "punycode"
    weight: int = 5

    def evaluate(self, ctx: DomainContext) -> HeuristicResults:
        count: int = ctx.domain.ascii.count(Normalizer.ACE_PREFIX)
        if not count:
            return HeuristicResults(name=self.name, score=0)
        return HeuristicResults(name=self.name, score=self.weight * count, evidence=f"xn--_count={count}")


class LabelHeuristic(HeuristicBase):
    """Match one label of the decomposed domain against a set of terms.

    Subclasses pick the label, the terms, the match rule, and the points
    awarded per matching term. Domains without a registrable root, or
    without the chosen label, score nothing.
    """

    points: int = 0

    def label(self, parts: DomainParts) -> str:
        raise NotImplementedError

    def terms(self, ctx: DomainContext) -> Iterable[str]:
        return ctx.keywords

    def matches(self, label: str, term: str) -> bool:
        raise NotImplementedError

    def evaluate(self, ctx: DomainContext) -> HeuristicResults:
        if ctx.parts is None:
            return HeuristicResults(name=self.name, score=0)
        label: str = self.label(ctx.parts)
        # An absent subdomain matches nothing, not even one-character keywords
        if not label:
            return HeuristicResults(name=self.name, score=0)
        hits: List[str] = [t for t in self.terms(ctx) if self.matches(label, t)]
        return HeuristicResults(name=self.name, score=self.points * len(hits), evidence=",".join(hits))


class RootLabel:
    def label(self, parts: DomainParts) -> str:
        return parts.root_label


class SubdomainLabel:
    def label(self, parts: DomainParts) -> str:
        return parts.subdomain_label


class RootKeywordHeuristic(RootLabel, LabelHeuristic):
    """Brand keyword inside the registered name, e.g. secure-paypal-login.com."""

    name: str = "root_keyword"
    points: int = KEYWORD_BASE * 4

    def matches(self, label: str, term: str) -> bool:
        return HeuristicUtils.contains(label, term)


class RootLookalikeHeuristic(RootLabel, LabelHeuristic):
    """Registered name one edit away from a keyword, e.g. paypa1.com."""

    name: str = "root_lookalike"
    points: int = 40

    def matches(self, label: str, term: str) -> bool:
        return HeuristicUtils.is_near_miss(label, term)


class SubdomainKeywordHeuristic(SubdomainLabel, LabelHeuristic):
    """Brand keyword in the leading subdomain label, e.g. paypal-login.example.net."""

    name: str = "subdomain_keyword"
    points: int = KEYWORD_BASE * 6

    def matches(self, label: str, term: str) -> bool:
        return HeuristicUtils.contains(label, term)


class SubdomainLookalikeHeuristic(SubdomainLabel, LabelHeuristic):
    name: str = "subdomain_lookalike"
    points: int = 40

    def matches(self, label: str, term: str) -> bool:
        return HeuristicUtils.is_near_miss(label, term)


class TldSpoofHeuristic(SubdomainLabel, LabelHeuristic):
    """Leading subdomain label posing as a TLD, e.g. com.account-verify.info."""

    name: str = "tld_spoof"
    points: int = KEYWORD_BASE * 8
    TOKENS: Tuple[str, ...] = ("com", "net", "-net", "-com", "net-", "com-")

    def terms(self, ctx: DomainContext) -> Iterable[str]:
        return self.TOKENS

    def matches(self, label: str, term: str) -> bool:
        return HeuristicUtils.equals_ignore_case(label, term)


class NestingHeuristic(HeuristicBase):
    """Penalize deeply nested domains."""

    name: str = "nesting"
    weight: int = 3
    min_labels: int = 3

    def evaluate(self, ctx: DomainContext) -> HeuristicResults:
        size: int = len(ctx.domain.labels)
        if size < self.min_labels:
            return HeuristicResults(name=self.name, score=0)
        return HeuristicResults(name=self.name, score=self.weight * size, evidence=f"labels={size}")


class Processor:
    """Score certificate domains and hand results to the output stage."""

    heuristics: List[HeuristicBase] = [
        PunycodeHeuristic(),
        RootKeywordHeuristic(),
        RootLookalikeHeuristic(),
        SubdomainKeywordHeuristic(),
        SubdomainLookalikeHeuristic(),
        TldSpoofHeuristic(),
        NestingHeuristic(),
    ]

    def __init__(
        self,
        keywords: Iterable[str],
        decomposer: Decomposer,
        output: Output,
        counter: Optional[Counter] = None,
        workers: int = 1,
    ) -> None:
        self.keywords: Tuple[str, ...] = tuple(dict.fromkeys(keywords))
        self.decomposer = decomposer
        self.output = output
        self.counter = counter
        self.workers = workers

    def score(self, raw_domain: str) -> ScoreReport:
        """Score one raw certificate domain.

        Args:
            raw_domain: Domain as listed in the certificate.

        Returns:
            ScoreReport: Total score with the non-zero heuristic contributions.
        """
        domain: NormalizedDomain = Normalizer.normalize(raw_domain)
        ctx = DomainContext(
            domain=domain,
            parts=self.decomposer.decompose(domain.normalized),
            keywords=self.keywords,
        )
        results: List[HeuristicResults] = [h.evaluate(ctx) for h in Processor.heuristics]
        return ScoreReport(
            score=sum(r.score for r in results),
            normalized_domain=domain.normalized,
            raw_domain=domain.ascii,
            evidence=tuple(r for r in results if r.score),
        )

    async def process(self, update: CertificateUpdate, executor: ThreadPoolExecutor) -> List[ScoreReport]:
        """Score every domain of one certificate update, then report them in order."""
        loop = asyncio.get_running_loop()
        reports: List[ScoreReport] = list(
            await asyncio.gather(*(loop.run_in_executor(executor, self.score, d) for d in update.domains))
        )
        for report in reports:
            logger.debug("domain_scored", domain=report.normalized_domain, score=report.score)
            self.output.report(report)
            if self.counter is not None:
                self.counter.record(report)
        return reports

    async def start(self, queue: "asyncio.Queue[CertificateUpdate]") -> None:
        """Consume certificate updates from the ingester forever."""
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="scorer") as executor:
            while True:
                update: CertificateUpdate = await queue.get()
                try:
                    await self.process(update, executor)
                finally:
                    queue.task_done()
