"""
TD Report extraction.

The TD Report record carries the trust domain's measurement registers and
identity fields. It is populated either from a decoded quote body or, when no
structured decoding succeeded, directly from raw quote bytes by fixed offsets.

Raw extraction anchors the record at quote offset 48 and requires the
584-byte wire report ``quote[48:632]`` to be present. The record layout is
1048 bytes long, so fields past the wire report (from the tail of
``mr_signer_seam`` onwards, including all RTMRs) continue into the bytes that
follow it in the quote; anything past the end of the buffer reads as zero.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from .abi_tdx import HEADER_SIZE, RTMR_COUNT, QuoteV4
from .types import REGISTER_SIZE

logger = logging.getLogger(__name__)

TD_REPORT_WIRE_SIZE = 584
TD_REPORT_QUOTE_START = HEADER_SIZE  # 48
TD_REPORT_QUOTE_END = TD_REPORT_QUOTE_START + TD_REPORT_WIRE_SIZE  # 632

# (field, offset, size), offsets relative to the start of the TD Report
TD_REPORT_LAYOUT: Tuple[Tuple[str, int, int], ...] = (
    ("report_type", 0, 4),
    ("reserved1", 4, 12),
    ("cpu_svn", 16, 16),
    ("tee_tcb_info_hash", 32, 48),
    ("tee_info_hash", 80, 48),
    ("report_data", 128, 64),
    ("reserved2", 192, 32),
    ("mac_struct", 224, 256),
    ("tee_tcb_svn", 480, 16),
    ("mr_seam", 496, 48),
    ("mr_signer_seam", 544, 48),
    ("seam_attributes", 592, 8),
    ("td_attributes", 600, 8),
    ("xfam", 608, 8),
    ("mr_td", 616, 48),
    ("mr_config_id", 664, 48),
    ("mr_owner", 712, 48),
    ("mr_owner_config", 760, 48),
    ("rtmr0", 808, 48),
    ("rtmr1", 856, 48),
    ("rtmr2", 904, 48),
    ("rtmr3", 952, 48),
    ("serv_td_hash", 1000, 48),
)

TD_REPORT_RECORD_SIZE = 1048
_FIELD_SIZES = {name: size for name, _, size in TD_REPORT_LAYOUT}


class TdReportError(Exception):
    """Raised when a TD Report cannot be extracted."""
    pass


class QuoteTooShortError(TdReportError):
    """Raised when raw quote bytes cannot contain a TD Report."""
    pass


class InvalidTdReportSizeError(TdReportError):
    """Raised when the TD Report slice is not exactly 584 bytes."""
    pass


def _zeros(size: int):
    return field(default_factory=lambda: b"\x00" * size)


@dataclass
class TDReport:
    """
    Runtime TD Report.

    All fields are opaque byte strings; nothing is byte-swapped. Fields that
    a given source does not provide stay zero.
    """
    report_type: bytes = _zeros(4)
    reserved1: bytes = _zeros(12)
    cpu_svn: bytes = _zeros(16)
    tee_tcb_info_hash: bytes = _zeros(48)
    tee_info_hash: bytes = _zeros(48)
    report_data: bytes = _zeros(64)
    reserved2: bytes = _zeros(32)
    mac_struct: bytes = _zeros(256)
    tee_tcb_svn: bytes = _zeros(16)
    mr_seam: bytes = _zeros(48)
    mr_signer_seam: bytes = _zeros(48)
    seam_attributes: bytes = _zeros(8)
    td_attributes: bytes = _zeros(8)
    xfam: bytes = _zeros(8)
    mr_td: bytes = _zeros(48)
    mr_config_id: bytes = _zeros(48)
    mr_owner: bytes = _zeros(48)
    mr_owner_config: bytes = _zeros(48)
    rtmr0: bytes = _zeros(48)
    rtmr1: bytes = _zeros(48)
    rtmr2: bytes = _zeros(48)
    rtmr3: bytes = _zeros(48)
    serv_td_hash: bytes = _zeros(48)

    @property
    def rtmrs(self) -> List[bytes]:
        return [self.rtmr0, self.rtmr1, self.rtmr2, self.rtmr3]

    def __str__(self) -> str:
        rtmr_lines = "".join(
            f"  rtmr{i}={rtmr.hex()},\n" for i, rtmr in enumerate(self.rtmrs)
        )
        return (
            f"TDReport(\n"
            f"  mr_td={self.mr_td.hex()},\n"
            f"{rtmr_lines}"
            f"  mr_config_id={self.mr_config_id.hex()}\n"
            f")"
        )


def _fit(value: bytes, size: int) -> bytes:
    """Copy ``value`` into a ``size``-byte field, truncating or zero-filling."""
    return bytes(value[:size]).ljust(size, b"\x00")


# Body fields that share a name with a TD Report field.
_SHARED_BODY_FIELDS = (
    "report_data",
    "tee_tcb_svn",
    "mr_seam",
    "mr_signer_seam",
    "seam_attributes",
    "td_attributes",
    "xfam",
    "mr_td",
    "mr_config_id",
    "mr_owner",
    "mr_owner_config",
)


def td_report_from_quote(quote: QuoteV4) -> TDReport:
    """
    Build a TD Report from a decoded quote body.

    RTMRs are copied only when the body lists at least four of them;
    otherwise they are left zero.
    """
    body = quote.td_quote_body
    report = TDReport(
        **{name: _fit(getattr(body, name), _FIELD_SIZES[name]) for name in _SHARED_BODY_FIELDS}
    )

    if len(body.rtmrs) >= RTMR_COUNT:
        report.rtmr0, report.rtmr1, report.rtmr2, report.rtmr3 = (
            _fit(rtmr, REGISTER_SIZE) for rtmr in body.rtmrs[:RTMR_COUNT]
        )
    else:
        logger.warning(
            "TD quote body lists %d RTMRs, expected %d; leaving RTMRs uninitialized",
            len(body.rtmrs), RTMR_COUNT,
        )

    return report


def extract_td_report_from_raw(data: bytes) -> TDReport:
    """
    Extract the TD Report from raw quote bytes by fixed offsets.

    Args:
        data: Raw quote bytes (header, TD Report, signature material)

    Returns:
        TDReport with every field copied from its layout offset

    Raises:
        QuoteTooShortError: If fewer than 632 bytes are supplied
        InvalidTdReportSizeError: If the TD Report slice is not 584 bytes
    """
    if len(data) < TD_REPORT_QUOTE_END:
        raise QuoteTooShortError(f"quote too short: {len(data)} bytes")

    wire_report = data[TD_REPORT_QUOTE_START:TD_REPORT_QUOTE_END]
    if len(wire_report) != TD_REPORT_WIRE_SIZE:
        raise InvalidTdReportSizeError(
            f"invalid TD Report size: {len(wire_report)} bytes, expected {TD_REPORT_WIRE_SIZE}"
        )

    values = {}
    zero_filled = []
    for name, offset, size in TD_REPORT_LAYOUT:
        start = TD_REPORT_QUOTE_START + offset
        chunk = data[start:start + size]
        if len(chunk) < size:
            zero_filled.append(name)
        values[name] = _fit(chunk, size)

    if zero_filled:
        logger.warning(
            "Quote ends before TD Report fields %s; they read as zero",
            ", ".join(zero_filled),
        )

    return TDReport(**values)
