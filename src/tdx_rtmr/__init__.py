from .attestation import (
    InspectionConfig,
    InspectionResult,
    QuoteFormat,
    TDReport,
    inspect_quote,
    replay_rtmr1,
)
from .report import format_inspection, format_rtmr1

__version__ = "0.1.0"

__all__ = [
    'InspectionConfig',
    'InspectionResult',
    'QuoteFormat',
    'TDReport',
    'inspect_quote',
    'replay_rtmr1',
    'format_inspection',
    'format_rtmr1',
]
