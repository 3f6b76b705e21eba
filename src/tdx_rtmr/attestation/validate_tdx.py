"""
Structural sanity checks for decoded TDX quotes.

Nothing here is fatal: every problem is recorded as a finding and logged,
and processing continues so the measurements can still be reported.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .abi_tdx import (
    ATTESTATION_KEY_SIZE,
    SIGNATURE_SIZE,
    QuoteV4,
)

logger = logging.getLogger(__name__)


@dataclass
class HeaderSummary:
    """Displayable header fields."""
    version: int
    attestation_key_type: int
    tee_type: int
    qe_svn: bytes
    pce_svn: bytes


@dataclass
class StructureReport:
    """
    Result of structural validation.

    ``signature_format_ok`` is True when both the signature and the
    attestation key have the raw ECDSA-P256 size of 64 bytes.
    """
    header: Optional[HeaderSummary] = None
    signed_data_present: bool = False
    signature: bytes = b""
    public_key: bytes = b""
    signature_format_ok: bool = False
    findings: List[str] = field(default_factory=list)

    @property
    def signature_present(self) -> bool:
        return len(self.signature) > 0

    @property
    def public_key_present(self) -> bool:
        return len(self.public_key) > 0


def _finding(report: StructureReport, message: str) -> None:
    logger.warning(message)
    report.findings.append(message)


def validate_quote_structure(quote: QuoteV4) -> StructureReport:
    """
    Check header presence and signed data sizes.

    Args:
        quote: Canonical decoded quote

    Returns:
        StructureReport with the displayable fields and any findings
    """
    report = StructureReport()

    header = quote.header
    if header is None:
        _finding(report, "No header found")
        return report

    report.header = HeaderSummary(
        version=header.version,
        attestation_key_type=header.attestation_key_type,
        tee_type=header.tee_type,
        qe_svn=header.qe_svn,
        pce_svn=header.pce_svn,
    )

    signed_data = quote.signed_data
    if signed_data is None:
        _finding(report, "No signed data found")
        return report

    report.signed_data_present = True
    report.signature = signed_data.signature
    report.public_key = signed_data.attestation_key

    sig_len = len(report.signature)
    key_len = len(report.public_key)
    if sig_len == SIGNATURE_SIZE and key_len == ATTESTATION_KEY_SIZE:
        report.signature_format_ok = True
    else:
        _finding(
            report,
            f"Unexpected signature/key sizes: sig={sig_len}, key={key_len}",
        )

    return report
