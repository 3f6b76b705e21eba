"""
Human-readable rendering of inspection results.

Pure functions: they take decoded values and return text, so the parsing
and verification core never prints.
"""

from typing import List

from .attestation.inspection import InspectionResult
from .attestation.td_report import TDReport
from .attestation.types import BOOT_RTMR_INDEX, is_uninitialized
from .attestation.validate_tdx import StructureReport
from .attestation.verify_tdx import SignatureVerification

UNINITIALIZED_MARKER = "<all zeros - uninitialized>"

RTMR_MEANINGS = (
    "Static/dynamic configuration data",
    "OS kernel, boot parameters, initrd",
    "Additional boot components, ACPI tables",
    "Application-specific measurements",
)

SIGNATURE_FAILURE_CAUSES = (
    "Incorrect signed data construction",
    "Quote has been tampered with",
    "Different signing algorithm used",
)


def format_register(value: bytes) -> str:
    """Hex encoding of a register, or the uninitialized marker if all zero."""
    if is_uninitialized(value):
        return UNINITIALIZED_MARKER
    return value.hex()


def _section(title: str) -> List[str]:
    return [title, "=" * len(title)]


def _structure_lines(structure: StructureReport) -> List[str]:
    lines = [""] + _section("Quote Structure Validation:")

    header = structure.header
    if header is None:
        lines.append("❌ No header found")
        return lines

    lines += [
        f"Quote Version: {header.version}",
        f"Attestation Key Type: {header.attestation_key_type}",
        f"TEE Type: 0x{header.tee_type:08x}",
        f"QE SVN: {header.qe_svn.hex()}",
        f"PCE SVN: {header.pce_svn.hex()}",
    ]

    if not structure.signed_data_present:
        lines.append("❌ No signed data found")
        return lines

    lines += [
        f"Signature present: {structure.signature_present} ({len(structure.signature)} bytes)",
        f"Public key present: {structure.public_key_present} ({len(structure.public_key)} bytes)",
    ]
    if structure.signature_format_ok:
        lines.append("✅ ECDSA P-256 signature format detected")
    else:
        lines.append(
            f"❌ Unexpected signature/key sizes: sig={len(structure.signature)}, "
            f"key={len(structure.public_key)}"
        )

    if structure.signature_present:
        lines.append(f"Signature: {structure.signature.hex()}")
    if structure.public_key_present:
        lines.append(f"Public Key: {structure.public_key.hex()}")
    return lines


def _component(value, width: int = 32) -> str:
    return value.to_bytes(width, byteorder="big").hex()


def _signature_lines(signature: SignatureVerification) -> List[str]:
    lines = [""] + _section("Signature Validation (Offline Check):")

    if signature.r is not None:
        lines += [
            f"Signature R: {_component(signature.r)}",
            f"Signature S: {_component(signature.s)}",
        ]
    if signature.x is not None:
        lines += [
            f"Public Key X: {_component(signature.x)}",
            f"Public Key Y: {_component(signature.y)}",
        ]

    if signature.on_curve is False:
        lines.append("❌ Public key is not on P-256 curve")
        return lines
    if signature.on_curve:
        lines.append("✅ Public key is valid P-256 point")

    if signature.payload_hash is None:
        lines.append(f"❌ Could not create signed payload: {signature.error}")
        return lines

    lines += [
        f"Signed payload length: {signature.payload_size} bytes",
        f"Signed data hash: {signature.payload_hash.hex()}",
    ]
    if signature.valid:
        lines.append("✅ Signature verification PASSED - Quote structure is valid!")
    else:
        lines.append("❌ Signature verification FAILED")
        lines.append("   This could mean:")
        lines += [f"   - {cause}" for cause in SIGNATURE_FAILURE_CAUSES]
    return lines


def format_td_report(report: TDReport) -> str:
    """Render the RTMRs, MR* registers and RTMR meanings."""
    lines = _section("Runtime TD Report RTMR Values:")
    for i, rtmr in enumerate(report.rtmrs):
        lines.append(f"RTMR[{i}]: {format_register(rtmr)}")

    lines += [
        "",
        f"MrTd (Trust Domain Measurement): {report.mr_td.hex()}",
        f"MrConfigId: {report.mr_config_id.hex()}",
        f"MrOwner: {report.mr_owner.hex()}",
        f"MrOwnerConfig: {report.mr_owner_config.hex()}",
        "",
        "RTMR Meanings:",
    ]
    lines += [f"RTMR[{i}]: {meaning}" for i, meaning in enumerate(RTMR_MEANINGS)]
    return "\n".join(lines)


def format_inspection(result: InspectionResult) -> str:
    """Render a full inspection report."""
    lines = [
        f"Quote file size: {result.size} bytes",
        "",
        f"Detected {result.format.value} format",
    ]

    if result.structure is not None:
        lines += _structure_lines(result.structure)
        if result.signature is not None:
            lines += _signature_lines(result.signature)
    else:
        lines.append("Structured decoding unavailable; signature not verified")

    lines += ["", format_td_report(result.td_report)]
    return "\n".join(lines)


def format_rtmr1(value: bytes) -> str:
    """The replayed boot register as printed by ``tdx-rtmr1``."""
    return f"RTMR[{BOOT_RTMR_INDEX}] = {value.hex()}"
