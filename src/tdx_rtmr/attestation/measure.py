"""
RTMR extend chain and measured-boot replay.

An RTMR starts at 48 zero bytes and is updated with
``new = SHA384(old || measurement)``. Replaying the firmware's boot sequence
(kernel, then initrd, then command line) over the same artifacts reproduces
RTMR[1] as attested in the quote.
"""

import hashlib
from dataclasses import dataclass

from .types import REGISTER_SIZE, ZERO_REGISTER


def digest(data: bytes) -> bytes:
    """SHA-384 digest of ``data``."""
    return hashlib.sha384(data).digest()


def extend(accumulator: bytes, measurement: bytes) -> bytes:
    """
    Fold ``measurement`` into a register value.

    Raises:
        ValueError: If the accumulator is not a 48-byte register value
    """
    if len(accumulator) != REGISTER_SIZE:
        raise ValueError(
            f"RTMR accumulator is {len(accumulator)} bytes, expected {REGISTER_SIZE}"
        )
    return hashlib.sha384(accumulator + measurement).digest()


def replay(measurements) -> bytes:
    """Extend a zeroed register with each measurement in order."""
    rtmr = ZERO_REGISTER
    for measurement in measurements:
        rtmr = extend(rtmr, measurement)
    return rtmr


def replay_rtmr1(kernel: bytes, initrd: bytes, cmdline: bytes) -> bytes:
    """
    Predict RTMR[1] from the boot artifacts.

    Trailing newlines are stripped from the command line only, matching what
    the kernel exposes in /proc/cmdline versus what the bootloader measured.
    """
    cmdline = cmdline.rstrip(b"\n")
    return replay([digest(kernel), digest(initrd), digest(cmdline)])


@dataclass
class BootArtifacts:
    """Paths of the files measured into RTMR[1]."""
    kernel: str
    initrd: str
    cmdline: str


def replay_boot_measurements(artifacts: BootArtifacts) -> bytes:
    """Read the boot artifacts from disk and replay RTMR[1]."""
    with open(artifacts.kernel, "rb") as f:
        kernel = f.read()
    with open(artifacts.initrd, "rb") as f:
        initrd = f.read()
    with open(artifacts.cmdline, "rb") as f:
        cmdline = f.read()

    return replay_rtmr1(kernel, initrd, cmdline)
