"""
Quote inspection orchestration.

Coordinates between:
- Encoding detection (decode)
- Structural checks (validate_tdx)
- Offline signature verification (verify_tdx)
- TD Report extraction (td_report)

Usage:
    from tdx_rtmr.attestation.inspection import inspect_quote

    result = inspect_quote(raw_bytes)
    # result.td_report.rtmrs holds RTMR[0..3]
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .decode import DecodedQuote, decode_quote
from .td_report import TDReport, extract_td_report_from_raw, td_report_from_quote
from .types import QuoteFormat
from .validate_tdx import StructureReport, validate_quote_structure
from .verify_tdx import (
    SignatureVerification,
    SignatureVerificationFailedError,
    verify_quote_signature,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InspectionConfig:
    """
    Configuration for quote inspection.

    The defaults favour extracting as much as possible from a quote whose
    authenticity could not be established offline.
    """
    allow_raw_fallback: bool = True
    require_valid_signature: bool = False


_DEFAULT_CONFIG = InspectionConfig()


@dataclass
class InspectionResult:
    """
    Everything learned about a quote.

    ``structure`` and ``signature`` are None for ``QuoteFormat.RAW``, where
    no structured decoding succeeded.
    """
    decoded: DecodedQuote
    td_report: TDReport
    structure: Optional[StructureReport] = None
    signature: Optional[SignatureVerification] = None

    @property
    def format(self) -> QuoteFormat:
        return self.decoded.format

    @property
    def size(self) -> int:
        return len(self.decoded.raw)


def inspect_quote(data: bytes, config: Optional[InspectionConfig] = None) -> InspectionResult:
    """
    Decode a quote, check it and extract its TD Report.

    Args:
        data: Quote file contents in any supported encoding
        config: Optional inspection config. Uses defaults if None.

    Returns:
        InspectionResult

    Raises:
        UnrecognizedFormatError: If no decoding applies and fallback is disabled
        QuoteTooShortError: If raw extraction is needed and the quote is too short
        InvalidTdReportSizeError: If the raw TD Report slice has the wrong size
        SignatureVerificationFailedError: If config requires a valid signature
            and verification failed
    """
    if config is None:
        config = _DEFAULT_CONFIG

    decoded = decode_quote(data, allow_raw_fallback=config.allow_raw_fallback)

    if not decoded.is_structured:
        logger.warning(
            "Quote could not be decoded structurally; signature not verified, "
            "extracting TD Report by offset"
        )
        return InspectionResult(
            decoded=decoded,
            td_report=extract_td_report_from_raw(decoded.raw),
        )

    quote = decoded.quote
    structure = validate_quote_structure(quote)

    signature = None
    if structure.signature_format_ok:
        signature = verify_quote_signature(quote)
        if not signature.valid:
            if config.require_valid_signature:
                raise SignatureVerificationFailedError(signature.error)
            logger.warning("Continuing despite failed signature verification")
    elif config.require_valid_signature:
        raise SignatureVerificationFailedError(
            f"Quote signature cannot be verified: {structure.findings[-1]}"
        )

    return InspectionResult(
        decoded=decoded,
        td_report=td_report_from_quote(quote),
        structure=structure,
        signature=signature,
    )
