"""
Locating the boot artifacts measured into RTMR[1].

The newest kernel under the boot directory is chosen by version order, then
the newest initrd whose name carries that kernel's version string.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import List, Optional

from .attestation.measure import BootArtifacts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BootConfig:
    """Where to look for the kernel, initrd and running command line."""
    boot_dir: str = "/boot"
    cmdline_path: str = "/proc/cmdline"
    kernel_prefix: str = "vmlinuz-"
    initrd_prefix: str = "initrd.img-"


_DEFAULT_CONFIG = BootConfig()


class BootArtifactsNotFoundError(Exception):
    """Raised when no kernel/initrd pair can be found."""
    pass


def version_key(name: str):
    """Sort key comparing digit runs numerically, like ``sort -V``."""
    return [
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in re.split(r"(\d+)", name)
        if part
    ]


def _newest(names: List[str]) -> Optional[str]:
    if not names:
        return None
    return max(names, key=version_key)


def _list_prefixed(directory: str, prefix: str) -> List[str]:
    try:
        entries = os.listdir(directory)
    except OSError as e:
        raise BootArtifactsNotFoundError(f"Cannot list {directory}: {e}") from e
    return [
        name for name in entries
        if name.startswith(prefix) and os.path.isfile(os.path.join(directory, name))
    ]


def find_boot_artifacts(config: Optional[BootConfig] = None) -> BootArtifacts:
    """
    Find the newest kernel and its matching initrd.

    Raises:
        BootArtifactsNotFoundError: If either file is missing
    """
    if config is None:
        config = _DEFAULT_CONFIG

    kernel_name = _newest(_list_prefixed(config.boot_dir, config.kernel_prefix))
    if kernel_name is None:
        raise BootArtifactsNotFoundError("Kernel or initrd not found.")

    kernel_version = kernel_name[len(config.kernel_prefix):]
    initrd_name = _newest([
        name for name in _list_prefixed(config.boot_dir, config.initrd_prefix)
        if kernel_version in name
    ])
    if initrd_name is None:
        raise BootArtifactsNotFoundError("Kernel or initrd not found.")

    artifacts = BootArtifacts(
        kernel=os.path.join(config.boot_dir, kernel_name),
        initrd=os.path.join(config.boot_dir, initrd_name),
        cmdline=config.cmdline_path,
    )
    logger.info("Using:")
    logger.info("  Kernel: %s", artifacts.kernel)
    logger.info("  Initrd: %s", artifacts.initrd)
    logger.info("  Cmdline: %s", artifacts.cmdline)
    return artifacts
