"""Registrable-domain decomposition backed by the public suffix list (tldextract)."""
from .commons import DomainParts, SuffixListError
from .config import SuffixListConfig
from typing import Any, Dict, Optional, Protocol

import structlog
import tldextract

logger = structlog.get_logger(__name__)


class SuffixResolver(Protocol):
    """Anything that maps a host to its registrable root, or None."""

    def root(self, domain: str) -> Optional[str]: ...


class TLDExtractResolver:
    """Suffix resolver over a tldextract extractor."""

    def __init__(self, extractor: tldextract.TLDExtract) -> None:
        self._extract = extractor

    def root(self, domain: str) -> Optional[str]:
        """Return the registrable eTLD+1 of a domain, or None if it has none."""
        ext: tldextract.ExtractResult = self._extract(domain)
        if not ext.domain or not ext.suffix:
            return None
        return f"{ext.domain}.{ext.suffix}"


class Decomposer:
    """Splits normalized domains into registrable root and subdomain."""

    WARMUP_HOST: str = "example.com"

    def __init__(self, resolver: SuffixResolver) -> None:
        self.resolver = resolver

    @staticmethod
    def load(config: SuffixListConfig) -> "Decomposer":
        """Build a decomposer, fetching the public suffix list now.

        Raises:
            SuffixListError: If the list cannot be fetched (or, offline, read).
        """
        # Private-section suffixes (github.io, herokuapp.com) count as public ones
        kwargs: Dict[str, Any] = {"include_psl_private_domains": True}
        if config.cache_dir is not None:
            kwargs["cache_dir"] = config.cache_dir
        if config.offline:
            extractor = tldextract.TLDExtract(suffix_list_urls=(), fallback_to_snapshot=True, **kwargs)
        else:
            extractor = tldextract.TLDExtract(fallback_to_snapshot=False, **kwargs)

        resolver = TLDExtractResolver(extractor)
        # tldextract loads lazily; force the fetch before the stream starts
        try:
            root: Optional[str] = resolver.root(Decomposer.WARMUP_HOST)
        except Exception as e:
            raise SuffixListError(f"Unable to load the public suffix list: {e}") from e
        if root != Decomposer.WARMUP_HOST:
            raise SuffixListError("Public suffix list loaded but did not resolve a known domain")
        logger.info("suffix_list_loaded", offline=config.offline)
        return Decomposer(resolver)

    def decompose(self, normalized: str) -> Optional[DomainParts]:
        """Split a normalized domain into root and subdomain.

        Args:
            normalized: Wildcard-stripped, punycode-decoded domain.

        Returns:
            Optional[DomainParts]: None when no registrable root can be found.
        """
        # Fully qualified form: one trailing dot marks the DNS root, not a label
        domain: str = normalized[:-1] if normalized.endswith(".") else normalized
        try:
            root: Optional[str] = self.resolver.root(domain)
        except Exception as e:
            logger.debug("suffix_resolution_failed", domain=domain, error=str(e))
            return None
        if not root:
            return None

        labels: list[str] = domain.split(".")
        root_size: int = len(root.split("."))
        if root_size > len(labels):
            return None
        # Slice by label count so a root string repeated inside the subdomain is kept
        return DomainParts(
            root=".".join(labels[-root_size:]),
            subdomain=".".join(labels[:-root_size]),
        )
