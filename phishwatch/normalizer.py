"""Domain normalization: wildcard stripping and punycode label decoding."""
from .commons import NormalizedDomain

import structlog

logger = structlog.get_logger(__name__)


class Normalizer:
    """Turns raw certificate domains into their visual comparison form."""

    WILDCARD_PREFIX: str = "*."
    ACE_PREFIX: str = "xn--"

    @staticmethod
    def normalize(raw: str) -> NormalizedDomain:
        """Normalize a raw certificate domain.

        Args:
            raw: Domain exactly as listed in the certificate.

        Returns:
            NormalizedDomain: raw, wildcard-stripped and decoded forms.
        """
        ascii_domain: str = Normalizer.strip_wildcard(raw)
        labels: list[str] = ascii_domain.split(".")
        return NormalizedDomain(
            raw=raw,
            ascii=ascii_domain,
            normalized=".".join(Normalizer.decode_label(label) for label in labels),
            punycode_labels=sum(1 for label in labels if Normalizer.ACE_PREFIX in label),
        )

    @staticmethod
    def strip_wildcard(domain: str) -> str:
        """Remove one leading wildcard marker."""
        if domain.startswith(Normalizer.WILDCARD_PREFIX):
            return domain[len(Normalizer.WILDCARD_PREFIX):]
        return domain

    @staticmethod
    def decode_label(label: str) -> str:
        """Decode an xn-- label to Unicode; any other label is returned as is.

        A label that is not valid punycode is also returned unchanged.
        """
        if not label.startswith(Normalizer.ACE_PREFIX):
            return label
        try:
            return label[len(Normalizer.ACE_PREFIX):].encode("ascii").decode("punycode")
        except UnicodeError as e:
            logger.debug("punycode_decode_failed", label=label, error=str(e))
            return label
