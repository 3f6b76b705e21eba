from .decode import DecodedQuote, UnrecognizedFormatError, decode_quote
from .inspection import InspectionConfig, InspectionResult, inspect_quote
from .measure import BootArtifacts, digest, extend, replay_boot_measurements, replay_rtmr1
from .td_report import (
    TDReport,
    QuoteTooShortError,
    InvalidTdReportSizeError,
    extract_td_report_from_raw,
    td_report_from_quote,
)
from .types import QuoteFormat, is_uninitialized
from .verify_tdx import (
    SignatureVerification,
    TdxVerificationError,
    PublicKeyNotOnCurveError,
    PayloadReconstructionError,
    SignatureVerificationFailedError,
    verify_quote_signature,
)

__all__ = [
    'DecodedQuote',
    'UnrecognizedFormatError',
    'decode_quote',
    'InspectionConfig',
    'InspectionResult',
    'inspect_quote',
    'BootArtifacts',
    'digest',
    'extend',
    'replay_boot_measurements',
    'replay_rtmr1',
    'TDReport',
    'QuoteTooShortError',
    'InvalidTdReportSizeError',
    'extract_td_report_from_raw',
    'td_report_from_quote',
    'QuoteFormat',
    'is_uninitialized',
    'SignatureVerification',
    'TdxVerificationError',
    'PublicKeyNotOnCurveError',
    'PayloadReconstructionError',
    'SignatureVerificationFailedError',
    'verify_quote_signature',
]
