"""
Quote encoding detection.

A quote file may hold a protobuf ``tdx.QuoteV4`` message or the raw QuoteV4
wire bytes. Decoding strategies are tried in order and the first success
wins:

1. protobuf container
2. raw QuoteV4 translated through the ABI parser
3. raw bytes kept as-is for offset-based extraction (never fails)
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .abi_tdx import QuoteV4, TdxQuoteParseError, parse_quote
from .proto_tdx import TdxProtoDecodeError, parse_proto_quote
from .types import QuoteFormat

logger = logging.getLogger(__name__)


class QuoteDecodeError(Exception):
    """Base class for decoding failures."""
    pass


class UnrecognizedFormatError(QuoteDecodeError):
    """Raised when no structured decoding applies and raw fallback is disabled."""
    pass


@dataclass
class DecodedQuote:
    """
    Outcome of decoding a quote blob.

    ``quote`` is None only for ``QuoteFormat.RAW``, the best-effort mode in
    which consumers work from ``raw`` directly.
    """
    format: QuoteFormat
    raw: bytes
    quote: Optional[QuoteV4] = None

    @property
    def is_structured(self) -> bool:
        return self.quote is not None


_STRATEGIES: List[Tuple[QuoteFormat, Callable[[bytes], QuoteV4], Tuple[type, ...]]] = [
    (QuoteFormat.PROTOBUF, parse_proto_quote, (TdxProtoDecodeError,)),
    (QuoteFormat.RAW_ABI, parse_quote, (TdxQuoteParseError,)),
]


def decode_quote(data: bytes, allow_raw_fallback: bool = True) -> DecodedQuote:
    """
    Decode a quote blob of unknown encoding.

    Args:
        data: Quote file contents
        allow_raw_fallback: Return a ``QuoteFormat.RAW`` result instead of
            raising when no structured decoding applies

    Returns:
        DecodedQuote describing the detected format

    Raises:
        UnrecognizedFormatError: If nothing applies and fallback is disabled
    """
    failures = []
    for quote_format, strategy, errors in _STRATEGIES:
        try:
            quote = strategy(data)
        except errors as e:
            logger.debug("%s decoding failed: %s", quote_format.value, e)
            failures.append(f"{quote_format.value}: {e}")
            continue
        logger.debug("Decoded quote as %s", quote_format.value)
        return DecodedQuote(format=quote_format, raw=data, quote=quote)

    if not allow_raw_fallback:
        raise UnrecognizedFormatError(
            "Unrecognized quote format (" + "; ".join(failures) + ")"
        )

    logger.debug("Falling back to raw quote interpretation")
    return DecodedQuote(format=QuoteFormat.RAW, raw=data)
