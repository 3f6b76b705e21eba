"""
Shared types and constants for quote inspection.

This module has no intra-package dependencies, so any module can import
from it without risk of circular imports.
"""

from enum import Enum

# SHA-384 output width; every RTMR and MR* register has this size.
REGISTER_SIZE = 48
ZERO_REGISTER = b"\x00" * REGISTER_SIZE

# Conventional register replayed from kernel, initrd and command line.
BOOT_RTMR_INDEX = 1


class QuoteFormat(str, Enum):
    """Encoding a quote blob was recognised as."""
    PROTOBUF = "protobuf QuoteV4"
    RAW_ABI = "raw QuoteV4 (ABI converted)"
    RAW = "raw quote (manual parsing)"


def is_uninitialized(register: bytes) -> bool:
    """True if a measurement register still holds its all-zero reset value."""
    return not any(register)
