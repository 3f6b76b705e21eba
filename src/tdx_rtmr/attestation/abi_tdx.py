"""
TDX QuoteV4 wire layout and ABI translation.

This module converts between the raw little-endian QuoteV4 encoding produced
by the TDX quoting enclave and the canonical dataclasses used by the rest of
the package. Parsing and serialization are exact inverses, so the signed
region (Header || TdQuoteBody) can be rebuilt byte for byte from a decoded
quote regardless of which encoding it arrived in.
"""

import struct
from dataclasses import dataclass, field
from typing import List, Optional

# =============================================================================
# Constants
# =============================================================================

# Quote structure sizes
HEADER_SIZE = 0x30  # 48 bytes
TD_QUOTE_BODY_SIZE = 0x248  # 584 bytes
SIGNED_DATA_SIZE_FIELD_SIZE = 4

# Quote versions
QUOTE_VERSION_V4 = 4

# TEE type for TDX
TEE_TDX = 0x00000081

# Attestation key type (ECDSA-256-with-P-256 curve)
ATTESTATION_KEY_TYPE_ECDSA_P256 = 2

# Field sizes
QE_SVN_SIZE = 0x02
PCE_SVN_SIZE = 0x02
QE_VENDOR_ID_SIZE = 0x10  # 16 bytes
USER_DATA_SIZE = 0x14  # 20 bytes
TEE_TCB_SVN_SIZE = 0x10  # 16 bytes
MR_SEAM_SIZE = 0x30  # 48 bytes
MR_SIGNER_SEAM_SIZE = 0x30  # 48 bytes
SEAM_ATTRIBUTES_SIZE = 0x08  # 8 bytes
TD_ATTRIBUTES_SIZE = 0x08  # 8 bytes
XFAM_SIZE = 0x08  # 8 bytes
MR_TD_SIZE = 0x30  # 48 bytes
MR_CONFIG_ID_SIZE = 0x30  # 48 bytes
MR_OWNER_SIZE = 0x30  # 48 bytes
MR_OWNER_CONFIG_SIZE = 0x30  # 48 bytes
RTMR_SIZE = 0x30  # 48 bytes
RTMR_COUNT = 4
REPORT_DATA_SIZE = 0x40  # 64 bytes
SIGNATURE_SIZE = 0x40  # 64 bytes
ATTESTATION_KEY_SIZE = 0x40  # 64 bytes
ECDSA_P256_COMPONENT_SIZE = 0x20  # 32 bytes per R or S component
CERT_DATA_HEADER_SIZE = 6  # 2 bytes type + 4 bytes size

# =============================================================================
# Header offsets (relative to quote start)
# =============================================================================

HEADER_VERSION_START = 0x00
HEADER_AK_TYPE_START = 0x02
HEADER_TEE_TYPE_START = 0x04
HEADER_QE_SVN_START = 0x08
HEADER_QE_SVN_END = 0x0A
HEADER_PCE_SVN_START = 0x0A
HEADER_PCE_SVN_END = 0x0C
HEADER_QE_VENDOR_ID_START = 0x0C
HEADER_QE_VENDOR_ID_END = 0x1C
HEADER_USER_DATA_START = 0x1C
HEADER_USER_DATA_END = 0x30

# =============================================================================
# TdQuoteBody offsets (relative to body start at 0x30)
# =============================================================================

TD_TEE_TCB_SVN_START = 0x00
TD_TEE_TCB_SVN_END = 0x10
TD_MR_SEAM_START = 0x10
TD_MR_SEAM_END = 0x40
TD_MR_SIGNER_SEAM_START = 0x40
TD_MR_SIGNER_SEAM_END = 0x70
TD_SEAM_ATTRIBUTES_START = 0x70
TD_SEAM_ATTRIBUTES_END = 0x78
TD_ATTRIBUTES_START = 0x78
TD_ATTRIBUTES_END = 0x80
TD_XFAM_START = 0x80
TD_XFAM_END = 0x88
TD_MR_TD_START = 0x88
TD_MR_TD_END = 0xB8
TD_MR_CONFIG_ID_START = 0xB8
TD_MR_CONFIG_ID_END = 0xE8
TD_MR_OWNER_START = 0xE8
TD_MR_OWNER_END = 0x118
TD_MR_OWNER_CONFIG_START = 0x118
TD_MR_OWNER_CONFIG_END = 0x148
TD_RTMRS_START = 0x148
TD_RTMRS_END = 0x208
TD_REPORT_DATA_START = 0x208
TD_REPORT_DATA_END = 0x248

# =============================================================================
# Quote-level offsets
# =============================================================================

QUOTE_HEADER_START = 0x00
QUOTE_HEADER_END = 0x30
QUOTE_BODY_START = 0x30
QUOTE_BODY_END = 0x278
QUOTE_SIGNED_DATA_SIZE_START = 0x278
QUOTE_SIGNED_DATA_START = 0x27C

# =============================================================================
# SignedData offsets (relative to signed data start)
# =============================================================================

SIGNED_DATA_SIGNATURE_START = 0x00
SIGNED_DATA_SIGNATURE_END = 0x40
SIGNED_DATA_AK_START = 0x40
SIGNED_DATA_AK_END = 0x80
SIGNED_DATA_CERT_DATA_START = 0x80

# Smallest quote that can hold header, body, size field and the fixed part
# of the signed data.
QUOTE_MIN_SIZE = QUOTE_SIGNED_DATA_START + SIGNED_DATA_CERT_DATA_START + CERT_DATA_HEADER_SIZE


# =============================================================================
# Data Structures
# =============================================================================

@dataclass
class TdxHeader:
    """
    TDX Quote header (48 bytes).

    Contains quote metadata including version, attestation key type,
    TEE type, the QE and PCE security version numbers, and vendor information.
    """
    version: int  # 2 bytes - 4 for QuoteV4
    attestation_key_type: int  # 2 bytes - 2 (ECDSA-P256)
    tee_type: int  # 4 bytes - 0x81 (TDX)
    qe_svn: bytes  # 2 bytes
    pce_svn: bytes  # 2 bytes
    qe_vendor_id: bytes  # 16 bytes
    user_data: bytes  # 20 bytes

    def __str__(self) -> str:
        return (
            f"TdxHeader(version={self.version}, "
            f"ak_type={self.attestation_key_type}, "
            f"tee_type=0x{self.tee_type:x}, "
            f"qe_svn={self.qe_svn.hex()}, "
            f"pce_svn={self.pce_svn.hex()})"
        )


@dataclass
class TdQuoteBody:
    """
    TD Quote Body (584 bytes).

    The TD's measurements and report data as they appear in the quote. This
    is the region signed together with the header.
    """
    tee_tcb_svn: bytes  # 16 bytes
    mr_seam: bytes  # 48 bytes
    mr_signer_seam: bytes  # 48 bytes
    seam_attributes: bytes  # 8 bytes
    td_attributes: bytes  # 8 bytes
    xfam: bytes  # 8 bytes
    mr_td: bytes  # 48 bytes
    mr_config_id: bytes  # 48 bytes
    mr_owner: bytes  # 48 bytes
    mr_owner_config: bytes  # 48 bytes
    rtmrs: List[bytes]  # 4 x 48 bytes
    report_data: bytes  # 64 bytes

    def __str__(self) -> str:
        rtmr_lines = "".join(
            f"  rtmr{i}={rtmr.hex()},\n" for i, rtmr in enumerate(self.rtmrs)
        )
        return (
            f"TdQuoteBody(\n"
            f"  mr_td={self.mr_td.hex()},\n"
            f"{rtmr_lines}"
            f"  report_data={self.report_data.hex()}\n"
            f")"
        )


@dataclass
class CertificationData:
    """
    Certification data trailing the attestation key.

    Kept opaque: the PCK chain and QE report it carries are only needed
    to establish trust in the attestation key, which this package does not do.
    """
    cert_type: int  # 2 bytes
    cert_data_size: int  # 4 bytes
    data: bytes


@dataclass
class SignedData:
    """ECDSA quote signature, raw attestation key and certification data."""
    signature: bytes  # 64 bytes - ECDSA signature (R || S)
    attestation_key: bytes  # 64 bytes - raw P-256 public key (X || Y)
    certification_data: CertificationData

    def __str__(self) -> str:
        return (
            f"SignedData(signature={self.signature[:8].hex()}..., "
            f"attestation_key={self.attestation_key[:8].hex()}..., "
            f"cert_type={self.certification_data.cert_type})"
        )


@dataclass
class QuoteV4:
    """
    TDX Quote Version 4 in canonical form.

    Produced both from the raw wire encoding and from the protobuf container.
    ``signed_data`` is None only for a protobuf message without a signed
    data block.
    """
    header: TdxHeader
    td_quote_body: TdQuoteBody
    signed_data_size: int
    signed_data: Optional[SignedData]
    extra_bytes: bytes = field(default=b"")

    def __str__(self) -> str:
        return (
            f"QuoteV4(\n"
            f"  header={self.header},\n"
            f"  td_quote_body={self.td_quote_body},\n"
            f"  signed_data_size={self.signed_data_size},\n"
            f"  signed_data={self.signed_data}\n"
            f")"
        )


# =============================================================================
# Parsing Functions
# =============================================================================

class TdxQuoteParseError(Exception):
    """Raised when the raw QuoteV4 encoding cannot be translated."""
    pass


class TdxQuoteEncodeError(Exception):
    """Raised when a canonical quote component cannot be serialized."""
    pass


def _parse_header(data: bytes) -> TdxHeader:
    """
    Parse the 48-byte TDX quote header.

    Raises:
        TdxQuoteParseError: If header is truncated
    """
    if len(data) < HEADER_SIZE:
        raise TdxQuoteParseError(
            f"Header too short: {len(data)} bytes, expected {HEADER_SIZE}"
        )

    version, attestation_key_type, tee_type = struct.unpack_from(
        "<HHI", data, HEADER_VERSION_START
    )

    return TdxHeader(
        version=version,
        attestation_key_type=attestation_key_type,
        tee_type=tee_type,
        qe_svn=data[HEADER_QE_SVN_START:HEADER_QE_SVN_END],
        pce_svn=data[HEADER_PCE_SVN_START:HEADER_PCE_SVN_END],
        qe_vendor_id=data[HEADER_QE_VENDOR_ID_START:HEADER_QE_VENDOR_ID_END],
        user_data=data[HEADER_USER_DATA_START:HEADER_USER_DATA_END],
    )


def _parse_td_quote_body(data: bytes) -> TdQuoteBody:
    """
    Parse the 584-byte TD quote body.

    Raises:
        TdxQuoteParseError: If body is truncated
    """
    if len(data) < TD_QUOTE_BODY_SIZE:
        raise TdxQuoteParseError(
            f"TD quote body too short: {len(data)} bytes, expected {TD_QUOTE_BODY_SIZE}"
        )

    rtmrs = []
    for i in range(RTMR_COUNT):
        start = TD_RTMRS_START + (i * RTMR_SIZE)
        rtmrs.append(data[start:start + RTMR_SIZE])

    return TdQuoteBody(
        tee_tcb_svn=data[TD_TEE_TCB_SVN_START:TD_TEE_TCB_SVN_END],
        mr_seam=data[TD_MR_SEAM_START:TD_MR_SEAM_END],
        mr_signer_seam=data[TD_MR_SIGNER_SEAM_START:TD_MR_SIGNER_SEAM_END],
        seam_attributes=data[TD_SEAM_ATTRIBUTES_START:TD_SEAM_ATTRIBUTES_END],
        td_attributes=data[TD_ATTRIBUTES_START:TD_ATTRIBUTES_END],
        xfam=data[TD_XFAM_START:TD_XFAM_END],
        mr_td=data[TD_MR_TD_START:TD_MR_TD_END],
        mr_config_id=data[TD_MR_CONFIG_ID_START:TD_MR_CONFIG_ID_END],
        mr_owner=data[TD_MR_OWNER_START:TD_MR_OWNER_END],
        mr_owner_config=data[TD_MR_OWNER_CONFIG_START:TD_MR_OWNER_CONFIG_END],
        rtmrs=rtmrs,
        report_data=data[TD_REPORT_DATA_START:TD_REPORT_DATA_END],
    )


def _parse_signed_data(data: bytes) -> SignedData:
    """
    Parse the signed data section of the quote.

    Structure:
        - Signature: 64 bytes (ECDSA R || S)
        - Attestation Key: 64 bytes (raw P-256 public key)
        - Certification Data: 2 bytes type, 4 bytes size, payload

    Raises:
        TdxQuoteParseError: If data is truncated or sizes disagree
    """
    min_size = SIGNED_DATA_CERT_DATA_START + CERT_DATA_HEADER_SIZE
    if len(data) < min_size:
        raise TdxQuoteParseError(
            f"Signed data too short: {len(data)} bytes, minimum {min_size}"
        )

    cert_start = SIGNED_DATA_CERT_DATA_START
    cert_type, cert_data_size = struct.unpack_from("<HI", data, cert_start)
    payload_start = cert_start + CERT_DATA_HEADER_SIZE

    remaining = len(data) - payload_start
    if remaining != cert_data_size:
        raise TdxQuoteParseError(
            f"Certification data size mismatch: declared {cert_data_size} bytes, "
            f"but {remaining} bytes remain after header"
        )

    return SignedData(
        signature=data[SIGNED_DATA_SIGNATURE_START:SIGNED_DATA_SIGNATURE_END],
        attestation_key=data[SIGNED_DATA_AK_START:SIGNED_DATA_AK_END],
        certification_data=CertificationData(
            cert_type=cert_type,
            cert_data_size=cert_data_size,
            data=data[payload_start:],
        ),
    )


def _validate_header(header: TdxHeader) -> None:
    """
    Reject headers that do not describe an ECDSA-P256 TDX QuoteV4.

    Raises:
        TdxQuoteParseError: If validation fails
    """
    if header.version != QUOTE_VERSION_V4:
        raise TdxQuoteParseError(
            f"Unsupported quote version: {header.version}. Expected {QUOTE_VERSION_V4}."
        )

    if header.attestation_key_type != ATTESTATION_KEY_TYPE_ECDSA_P256:
        raise TdxQuoteParseError(
            f"Unsupported attestation key type: {header.attestation_key_type}. "
            f"Expected {ATTESTATION_KEY_TYPE_ECDSA_P256} (ECDSA-P256)."
        )

    if header.tee_type != TEE_TDX:
        raise TdxQuoteParseError(
            f"Invalid TEE type: 0x{header.tee_type:x}. Expected 0x{TEE_TDX:x} (TDX)."
        )


def parse_quote(data: bytes) -> QuoteV4:
    """
    Translate a raw QuoteV4 blob into the canonical structured form.

    Args:
        data: Raw quote bytes as returned by the TDX quote generation service

    Returns:
        Parsed QuoteV4 structure

    Raises:
        TdxQuoteParseError: If the bytes are not a well-formed TDX QuoteV4
    """
    if len(data) < QUOTE_MIN_SIZE:
        raise TdxQuoteParseError(
            f"Quote too short: {len(data)} bytes, minimum {QUOTE_MIN_SIZE}"
        )

    header = _parse_header(data[QUOTE_HEADER_START:QUOTE_HEADER_END])
    _validate_header(header)

    td_quote_body = _parse_td_quote_body(data[QUOTE_BODY_START:QUOTE_BODY_END])

    signed_data_size = struct.unpack_from("<I", data, QUOTE_SIGNED_DATA_SIZE_START)[0]

    signed_data_end = QUOTE_SIGNED_DATA_START + signed_data_size
    if len(data) < signed_data_end:
        raise TdxQuoteParseError(
            f"Quote truncated: signed data size is {signed_data_size}, "
            f"but only {len(data) - QUOTE_SIGNED_DATA_START} bytes available"
        )

    signed_data = _parse_signed_data(data[QUOTE_SIGNED_DATA_START:signed_data_end])

    return QuoteV4(
        header=header,
        td_quote_body=td_quote_body,
        signed_data_size=signed_data_size,
        signed_data=signed_data,
        extra_bytes=data[signed_data_end:],
    )


# =============================================================================
# Serialization Functions
# =============================================================================

def _fixed(name: str, value: bytes, size: int) -> bytes:
    if len(value) != size:
        raise TdxQuoteEncodeError(f"{name} is {len(value)} bytes, expected {size}")
    return bytes(value)


def header_to_abi_bytes(header: TdxHeader) -> bytes:
    """
    Serialize a header to its 48-byte wire encoding.

    Raises:
        TdxQuoteEncodeError: If a field does not fit its wire slot
    """
    try:
        prefix = struct.pack(
            "<HHI", header.version, header.attestation_key_type, header.tee_type
        )
    except struct.error as e:
        raise TdxQuoteEncodeError(f"Header integer field out of range: {e}") from e

    return (
        prefix
        + _fixed("qe_svn", header.qe_svn, QE_SVN_SIZE)
        + _fixed("pce_svn", header.pce_svn, PCE_SVN_SIZE)
        + _fixed("qe_vendor_id", header.qe_vendor_id, QE_VENDOR_ID_SIZE)
        + _fixed("user_data", header.user_data, USER_DATA_SIZE)
    )


def td_quote_body_to_abi_bytes(body: TdQuoteBody) -> bytes:
    """
    Serialize a TD quote body to its 584-byte wire encoding.

    Raises:
        TdxQuoteEncodeError: If a field has the wrong size or RTMRs are missing
    """
    if len(body.rtmrs) != RTMR_COUNT:
        raise TdxQuoteEncodeError(
            f"TD quote body has {len(body.rtmrs)} RTMRs, expected {RTMR_COUNT}"
        )

    parts = [
        _fixed("tee_tcb_svn", body.tee_tcb_svn, TEE_TCB_SVN_SIZE),
        _fixed("mr_seam", body.mr_seam, MR_SEAM_SIZE),
        _fixed("mr_signer_seam", body.mr_signer_seam, MR_SIGNER_SEAM_SIZE),
        _fixed("seam_attributes", body.seam_attributes, SEAM_ATTRIBUTES_SIZE),
        _fixed("td_attributes", body.td_attributes, TD_ATTRIBUTES_SIZE),
        _fixed("xfam", body.xfam, XFAM_SIZE),
        _fixed("mr_td", body.mr_td, MR_TD_SIZE),
        _fixed("mr_config_id", body.mr_config_id, MR_CONFIG_ID_SIZE),
        _fixed("mr_owner", body.mr_owner, MR_OWNER_SIZE),
        _fixed("mr_owner_config", body.mr_owner_config, MR_OWNER_CONFIG_SIZE),
    ]
    parts.extend(
        _fixed(f"rtmr{i}", rtmr, RTMR_SIZE) for i, rtmr in enumerate(body.rtmrs)
    )
    parts.append(_fixed("report_data", body.report_data, REPORT_DATA_SIZE))
    return b"".join(parts)
