"""Tests for the scoring heuristics and the Processor."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from phishwatch.commons import CertificateUpdate, DomainParts, Severity
from phishwatch.counter import Counter
from phishwatch.normalizer import Normalizer
from phishwatch.processor import (
    DomainContext,
    HeuristicUtils,
    NestingHeuristic,
    Processor,
    PunycodeHeuristic,
    RootKeywordHeuristic,
    RootLookalikeHeuristic,
    SubdomainKeywordHeuristic,
    SubdomainLookalikeHeuristic,
    TldSpoofHeuristic,
)


def context(raw: str, root: str | None, subdomain: str = "", keywords=("paypal",)) -> DomainContext:
    parts = None if root is None else DomainParts(root=root, subdomain=subdomain)
    return DomainContext(domain=Normalizer.normalize(raw), parts=parts, keywords=tuple(keywords))


class TestHeuristicUtils:
    def test_near_miss_substitution(self) -> None:
        assert HeuristicUtils.is_near_miss("paypa1", "paypal")

    def test_near_miss_transposition(self) -> None:
        assert HeuristicUtils.is_near_miss("pyapal", "paypal")

    def test_identical_is_not_near_miss(self) -> None:
        assert not HeuristicUtils.is_near_miss("paypal", "paypal")

    def test_distant_is_not_near_miss(self) -> None:
        assert not HeuristicUtils.is_near_miss("pay", "paypal")

    def test_contains_is_case_sensitive(self) -> None:
        assert HeuristicUtils.contains("my-paypal", "paypal")
        assert not HeuristicUtils.contains("my-PayPal", "paypal")


class TestPunycodeHeuristic:
    def test_counts_each_marker(self) -> None:
        result = PunycodeHeuristic().evaluate(context("xn--e1afmkfd.xn--p1ai", root=None))
        assert result.score == 10

    def test_wildcard_ignored(self) -> None:
        result = PunycodeHeuristic().evaluate(context("*.xn--e1afmkfd.com", root=None))
        assert result.score == 5

    def test_ascii_domain_scores_zero(self) -> None:
        assert PunycodeHeuristic().evaluate(context("example.com", root=None)).score == 0


class TestRootHeuristics:
    def test_keyword_contained(self) -> None:
        ctx = context("secure-paypal-login.com", root="secure-paypal-login.com")
        result = RootKeywordHeuristic().evaluate(ctx)
        assert result.score == 40
        assert result.evidence == "paypal"

    def test_each_keyword_counts(self) -> None:
        ctx = context(
            "secure-paypal-login.com",
            root="secure-paypal-login.com",
            keywords=("paypal", "login", "secure", "apple"),
        )
        assert RootKeywordHeuristic().evaluate(ctx).score == 120

    def test_lookalike_exactly_one_edit(self) -> None:
        ctx = context("paypa1.com", root="paypa1.com")
        assert RootLookalikeHeuristic().evaluate(ctx).score == 40
        assert RootKeywordHeuristic().evaluate(ctx).score == 0

    def test_lookalike_ignores_exact_brand(self) -> None:
        assert RootLookalikeHeuristic().evaluate(context("paypal.com", root="paypal.com")).score == 0

    def test_lookalike_ignores_distant_label(self) -> None:
        assert RootLookalikeHeuristic().evaluate(context("pay.com", root="pay.com")).score == 0

    def test_no_parts_scores_zero(self) -> None:
        ctx = context("paypal", root=None)
        assert RootKeywordHeuristic().evaluate(ctx).score == 0
        assert RootLookalikeHeuristic().evaluate(ctx).score == 0


class TestSubdomainHeuristics:
    def test_keyword_contained(self) -> None:
        ctx = context("paypal-login.example.net", root="example.net", subdomain="paypal-login")
        assert SubdomainKeywordHeuristic().evaluate(ctx).score == 60

    def test_only_first_label_checked(self) -> None:
        ctx = context("www.paypal.example.net", root="example.net", subdomain="www.paypal")
        assert SubdomainKeywordHeuristic().evaluate(ctx).score == 0

    def test_lookalike(self) -> None:
        ctx = context("paypall.example.net", root="example.net", subdomain="paypall")
        assert SubdomainLookalikeHeuristic().evaluate(ctx).score == 40

    def test_empty_subdomain_scores_zero(self) -> None:
        ctx = context("example.net", root="example.net", keywords=("p",))
        assert SubdomainKeywordHeuristic().evaluate(ctx).score == 0
        assert SubdomainLookalikeHeuristic().evaluate(ctx).score == 0


class TestTldSpoofHeuristic:
    @pytest.mark.parametrize("label", ["com", "net", "-net", "-com", "net-", "com-"])
    def test_tokens(self, label: str) -> None:
        ctx = context(f"{label}.example.org", root="example.org", subdomain=label)
        assert TldSpoofHeuristic().evaluate(ctx).score == 80

    def test_case_insensitive(self) -> None:
        ctx = context("COM.example.org", root="example.org", subdomain="COM")
        assert TldSpoofHeuristic().evaluate(ctx).score == 80

    def test_partial_token_ignored(self) -> None:
        ctx = context("community.example.org", root="example.org", subdomain="community")
        assert TldSpoofHeuristic().evaluate(ctx).score == 0

    def test_ignores_keyword_set(self) -> None:
        ctx = context("org.example.org", root="example.org", subdomain="org", keywords=("org",))
        assert TldSpoofHeuristic().evaluate(ctx).score == 0


class TestNestingHeuristic:
    def test_three_labels(self) -> None:
        assert NestingHeuristic().evaluate(context("a.b.c", root=None)).score == 9

    def test_two_labels(self) -> None:
        assert NestingHeuristic().evaluate(context("a.b", root=None)).score == 0

    def test_counts_normalized_labels(self) -> None:
        assert NestingHeuristic().evaluate(context("*.a.b.c.d", root=None)).score == 12


class TestProcessorScore:
    def test_secure_paypal_login_alerts(self, make_processor) -> None:
        processor = make_processor("paypal", "login", "secure")
        report = processor.score("secure-paypal-login.com")
        assert report.score == 120
        assert report.severity is Severity.HIGH

    def test_paypal_keyword_alone_contributes_forty(self, make_processor) -> None:
        assert make_processor("paypal").score("secure-paypal-login.com").score == 40

    def test_mail_google_com_below_threshold(self, make_processor) -> None:
        report = make_processor("google").score("mail.google.com")
        assert report.score == 49
        assert report.severity is None
        assert {r.name: r.score for r in report.evidence} == {"root_keyword": 40, "nesting": 9}

    def test_wildcard_domain(self, make_processor) -> None:
        report = make_processor("paypal").score("*.paypal-secure.example.com")
        # subdomain keyword 60 + nesting 9
        assert report.score == 69
        assert report.normalized_domain == "paypal-secure.example.com"
        assert report.raw_domain == "paypal-secure.example.com"

    def test_punycode_lookalike(self, make_processor) -> None:
        # "аррӏе" in Cyrillic, one decoded label
        report = make_processor("apple").score("xn--80ak6aa92e.com")
        assert report.normalized_domain == "аррӏе.com"
        assert report.raw_domain == "xn--80ak6aa92e.com"
        assert report.score == 5

    def test_tld_spoof_domain(self, make_processor) -> None:
        report = make_processor("paypal").score("com.paypal-verify.xyz")
        # root keyword 40 + tld spoof 80 + nesting 9
        assert report.score == 129

    def test_unresolvable_domain_scores_only_generic_heuristics(self, raising_decomposer, output) -> None:
        processor = Processor(keywords=["paypal"], decomposer=raising_decomposer, output=output)
        assert processor.score("paypal.login.example.com").score == 12

    @pytest.mark.parametrize(
        "raw",
        ["", ".", "*.", "xn--", "..", "a..b", "192.168.0.1", "xn--99999999999999.com", "COM.COM.COM"],
    )
    def test_score_never_negative(self, make_processor, raw: str) -> None:
        assert make_processor("paypal", "com", "a").score(raw).score >= 0

    def test_duplicate_keywords_counted_once(self, make_processor) -> None:
        assert make_processor("paypal", "paypal").score("paypal-login.com").score == 40


class TestProcessorPipeline:
    def test_process_reports_in_domain_order(self, make_processor, log_path: Path) -> None:
        counter = Counter(interval_s=60)
        processor = make_processor("paypal", "login", "secure", counter=counter, workers=4)
        update = CertificateUpdate(
            domains=("secure-paypal-login.com", "mail.example.com", "*.paypal-login.example.com")
        )

        async def run():
            with ThreadPoolExecutor(max_workers=4) as executor:
                return await processor.process(update, executor)

        reports = asyncio.run(run())
        assert [r.raw_domain for r in reports] == [
            "secure-paypal-login.com",
            "mail.example.com",
            "paypal-login.example.com",
        ]
        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert [line.split(" ", 1)[1] for line in lines] == [
            "secure-paypal-login.com",
            "paypal-login.example.com",
        ]
        assert counter.snapshot() == {"high": 2, "medium": 0, "low": 0, "benign": 1, "total": 3}

    def test_start_consumes_queue(self, make_processor, log_path: Path) -> None:
        processor = make_processor("paypal", "login")

        async def run() -> None:
            queue: asyncio.Queue[CertificateUpdate] = asyncio.Queue()
            task = asyncio.create_task(processor.start(queue))
            await queue.put(CertificateUpdate(domains=("paypal-login.com",)))
            await asyncio.wait_for(queue.join(), timeout=5)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())
        assert log_path.read_text(encoding="utf-8").strip().endswith("paypal-login.com")
