"""
Command-line entry points.

``tdx-quote-inspect QUOTE_FILE`` prints the decoded quote, the offline
signature verdict and the TD Report registers. ``tdx-rtmr1`` replays RTMR[1]
from the running system's kernel, initrd and command line.
"""

import argparse
import logging
import sys

from .attestation.decode import UnrecognizedFormatError
from .attestation.inspection import InspectionConfig, inspect_quote
from .attestation.measure import replay_boot_measurements
from .attestation.td_report import TdReportError
from .attestation.verify_tdx import SignatureVerificationFailedError
from .boot import BootArtifactsNotFoundError, BootConfig, find_boot_artifacts
from .report import format_inspection, format_rtmr1


class FileReadError(Exception):
    """Raised when an input file cannot be read."""
    pass


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser whose usage errors exit with status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        format='%(message)s',
        level=logging.DEBUG if verbose else logging.INFO
    )


def read_file(path: str) -> bytes:
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise FileReadError(f"Failed to read quote file: {e}") from e


def _inspect_parser(prog=None) -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog=prog,
        description="Decode a TDX quote and print its RTMR values",
    )
    parser.add_argument('quote_file', help='Path to a quote file (raw or protobuf)')
    parser.add_argument('--require-valid-signature', action='store_true',
                        help='Fail if the quote signature does not verify')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    return parser


def _rtmr1_parser(prog=None) -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog=prog,
        description="Reconstruct RTMR[1] from the kernel, initrd and kernel command line",
    )
    defaults = BootConfig()
    parser.add_argument('--boot-dir', default=defaults.boot_dir,
                        help='Directory holding vmlinuz-* and initrd.img-*')
    parser.add_argument('--cmdline', default=defaults.cmdline_path,
                        help='File holding the kernel command line')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    return parser


def run_inspect(args: argparse.Namespace) -> int:
    _configure_logging(args.verbose)

    print(f"Reading TDX quote from: {args.quote_file}")
    print("==============================")

    config = InspectionConfig(require_valid_signature=args.require_valid_signature)
    try:
        data = read_file(args.quote_file)
        result = inspect_quote(data, config)
    except FileReadError as e:
        logging.error(str(e))
        return 1
    except UnrecognizedFormatError as e:
        logging.error(f"Failed to decode quote: {e}")
        return 1
    except TdReportError as e:
        logging.error(f"Failed to extract TD Report from raw quote: {e}")
        return 1
    except SignatureVerificationFailedError as e:
        logging.error(f"Quote rejected: {e}")
        return 1

    print(format_inspection(result))
    return 0


def run_rtmr1(args: argparse.Namespace) -> int:
    _configure_logging(args.verbose)

    config = BootConfig(boot_dir=args.boot_dir, cmdline_path=args.cmdline)
    try:
        artifacts = find_boot_artifacts(config)
    except BootArtifactsNotFoundError as e:
        logging.error(str(e))
        return 1

    try:
        rtmr = replay_boot_measurements(artifacts)
    except OSError as e:
        logging.error(f"Failed to read boot artifact: {e}")
        return 1

    print(format_rtmr1(rtmr))
    return 0


def inspect_main(argv=None) -> int:
    """Entry point for ``tdx-quote-inspect``."""
    return run_inspect(_inspect_parser().parse_args(argv))


def rtmr1_main(argv=None) -> int:
    """Entry point for ``tdx-rtmr1``."""
    return run_rtmr1(_rtmr1_parser().parse_args(argv))


def main(argv=None) -> int:
    parser = _ArgumentParser(prog="tdx_rtmr", description="TDX quote and RTMR tools")
    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('inspect', parents=[_inspect_parser()], add_help=False,
                          help='Inspect a TDX quote')
    subparsers.add_parser('rtmr1', parents=[_rtmr1_parser()], add_help=False,
                          help='Replay RTMR[1] from boot artifacts')

    args = parser.parse_args(argv)
    if args.command == 'inspect':
        return run_inspect(args)
    return run_rtmr1(args)


if __name__ == "__main__":
    sys.exit(main())
