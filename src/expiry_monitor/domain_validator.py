"""
Domain validation and normalization module.

Checks a user-supplied domain before any WHOIS provider is contacted:
lowercase/IDNA normalization, DNS label grammar, and the apex-only rule
with its allow-list of multi-label public suffixes.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

import idna

from .enums import DomainValidationErrorCode
from .exceptions import ValidationError


# Standard DNS label grammar: 1-63 chars, alphanumerics and inner hyphens
DOMAIN_PATTERN = re.compile(
    r"^[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?"
    r"(\.[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?)*$"
)

# Public suffixes with two labels; domains under them may carry one extra label
MULTI_LABEL_SUFFIXES: tuple[str, ...] = (
    "pp.ua",
    "qzz.io",
    "dpdns.org",
    "us.kg",
    "xx.kg",
)


@dataclass
class DomainValidationError:
    """Structured error information for domain validation failures."""

    code: DomainValidationErrorCode
    message: str
    details: dict = field(default_factory=dict)


@dataclass
class DomainValidationResult:
    """Result of domain validation operation."""

    valid: bool
    canonical_domain: Optional[str]
    error: Optional[DomainValidationError]
    suffix: Optional[str] = None

    def raise_for_error(self) -> str:
        """Return the canonical domain or raise ValidationError."""
        if not self.valid or self.canonical_domain is None:
            assert self.error is not None
            raise ValidationError(
                code=self.error.code.value,
                message=self.error.message,
                details=self.error.details,
            )
        return self.canonical_domain


class DomainValidator:
    """
    Validates and normalizes domain names for WHOIS lookups.

    Handles:
    - Conversion to lowercase canonical form, IDNA encoding for IDNs
    - DNS label grammar
    - Apex-only lookups (exactly one label above the suffix)
    - One extra label for the allow-listed multi-label suffixes
    """

    def __init__(self, multi_label_suffixes: Optional[tuple[str, ...]] = None) -> None:
        """
        Args:
            multi_label_suffixes: Suffixes that permit one extra label;
                defaults to MULTI_LABEL_SUFFIXES
        """
        suffixes = multi_label_suffixes if multi_label_suffixes is not None else MULTI_LABEL_SUFFIXES
        self._multi_label_suffixes = tuple(s.lower().strip(".") for s in suffixes)

    @property
    def multi_label_suffixes(self) -> tuple[str, ...]:
        return self._multi_label_suffixes

    def validate(self, raw_domain: Optional[str]) -> DomainValidationResult:
        """
        Validate and normalize a domain string.

        Args:
            raw_domain: The raw domain string to validate

        Returns:
            DomainValidationResult with the canonical form or a coded error
        """
        if not raw_domain or not raw_domain.strip():
            return self._fail(
                DomainValidationErrorCode.EMPTY_INPUT,
                "Domain is required",
                raw_domain,
            )

        try:
            domain = self.normalize_to_canonical(raw_domain.strip())
        except ValidationError as e:
            return self._fail(DomainValidationErrorCode.IDNA_ERROR, e.message, raw_domain)

        if not DOMAIN_PATTERN.match(domain):
            return self._fail(
                DomainValidationErrorCode.MALFORMED,
                "Domain format is invalid",
                raw_domain,
            )

        dot_count = domain.count(".")
        if dot_count == 0:
            return self._fail(
                DomainValidationErrorCode.MISSING_SUFFIX,
                "Please enter a full domain (e.g. example.com)",
                raw_domain,
            )

        suffix = self.multi_label_suffix_of(domain)
        if dot_count == 1 or (dot_count == 2 and suffix is not None):
            return DomainValidationResult(
                valid=True,
                canonical_domain=domain,
                error=None,
                suffix=suffix or domain.rsplit(".", 1)[1],
            )

        return self._fail(
            DomainValidationErrorCode.SUBDOMAIN_NOT_ALLOWED,
            "Only apex domains can be queried, subdomains are not supported",
            raw_domain,
        )

    def normalize_to_canonical(self, domain: str) -> str:
        """
        Convert domain to canonical form (lowercase, IDNA-encoded).

        Raises:
            ValidationError: If IDNA encoding fails
        """
        domain_lower = domain.lower().rstrip(".")

        if any(ord(c) > 127 for c in domain_lower):
            try:
                return idna.encode(domain_lower, uts46=True).decode("ascii")
            except idna.IDNAError as e:
                raise ValidationError(
                    code=DomainValidationErrorCode.IDNA_ERROR.value,
                    message=f"IDNA encoding failed: {e}",
                    details={"domain": domain, "idna_error": str(e)},
                )

        return domain_lower

    def multi_label_suffix_of(self, domain: str) -> Optional[str]:
        """Return the allow-listed suffix the domain sits under, if any."""
        for suffix in self._multi_label_suffixes:
            if domain.endswith("." + suffix):
                return suffix
        return None

    def _fail(
        self,
        code: DomainValidationErrorCode,
        message: str,
        raw_domain: Optional[str],
    ) -> DomainValidationResult:
        return DomainValidationResult(
            valid=False,
            canonical_domain=None,
            error=DomainValidationError(
                code=code,
                message=message,
                details={"raw_input": raw_domain},
            ),
        )
