"""
Unit tests for QuoteV4 ABI translation (abi_tdx.py).
"""

import pytest
import struct

from tdx_rtmr.attestation.abi_tdx import (
    # Constants
    QUOTE_MIN_SIZE,
    QUOTE_VERSION_V4,
    TEE_TDX,
    ATTESTATION_KEY_TYPE_ECDSA_P256,
    HEADER_SIZE,
    TD_QUOTE_BODY_SIZE,
    RTMR_COUNT,
    # Dataclasses
    QuoteV4,
    # Functions
    parse_quote,
    header_to_abi_bytes,
    td_quote_body_to_abi_bytes,
    TdxQuoteParseError,
    TdxQuoteEncodeError,
    _parse_header,
    _parse_td_quote_body,
)

INTEL_QE_VENDOR_ID = bytes.fromhex("939a7233f79c4ca9940a0db3957f0607")
CERT_DATA_TYPE_QE_REPORT = 6


# =============================================================================
# Test Fixtures - Synthetic Quote Generation
# =============================================================================

def build_header(
    version: int = QUOTE_VERSION_V4,
    attestation_key_type: int = ATTESTATION_KEY_TYPE_ECDSA_P256,
    tee_type: int = TEE_TDX,
    qe_svn: bytes = b'\x08\x00',
    pce_svn: bytes = b'\x0d\x00',
    qe_vendor_id: bytes = INTEL_QE_VENDOR_ID,
    user_data: bytes = b'\x00' * 20,
) -> bytes:
    """Build a synthetic TDX quote header (48 bytes)."""
    header = b''
    header += struct.pack('<H', version)
    header += struct.pack('<H', attestation_key_type)
    header += struct.pack('<I', tee_type)
    header += qe_svn
    header += pce_svn
    header += qe_vendor_id[:16].ljust(16, b'\x00')
    header += user_data[:20].ljust(20, b'\x00')
    assert len(header) == HEADER_SIZE
    return header


def build_td_quote_body(
    tee_tcb_svn: bytes = b'\x03' + b'\x00' * 15,
    mr_seam: bytes = b'\xaa' * 48,
    mr_signer_seam: bytes = b'\x00' * 48,
    seam_attributes: bytes = b'\x00' * 8,
    td_attributes: bytes = b'\x00\x00\x00\x10\x00\x00\x00\x00',
    xfam: bytes = b'\xe7\x02\x06\x00\x00\x00\x00\x00',
    mr_td: bytes = b'\x11' * 48,
    mr_config_id: bytes = b'\x12' * 48,
    mr_owner: bytes = b'\x13' * 48,
    mr_owner_config: bytes = b'\x14' * 48,
    rtmr0: bytes = b'\x22' * 48,
    rtmr1: bytes = b'\x33' * 48,
    rtmr2: bytes = b'\x44' * 48,
    rtmr3: bytes = b'\x00' * 48,
    report_data: bytes = b'\xab' * 32 + b'\xcd' * 32,
) -> bytes:
    """Build a synthetic TD quote body (584 bytes)."""
    body = b''
    body += tee_tcb_svn[:16].ljust(16, b'\x00')
    body += mr_seam[:48].ljust(48, b'\x00')
    body += mr_signer_seam[:48].ljust(48, b'\x00')
    body += seam_attributes[:8].ljust(8, b'\x00')
    body += td_attributes[:8].ljust(8, b'\x00')
    body += xfam[:8].ljust(8, b'\x00')
    body += mr_td[:48].ljust(48, b'\x00')
    body += mr_config_id[:48].ljust(48, b'\x00')
    body += mr_owner[:48].ljust(48, b'\x00')
    body += mr_owner_config[:48].ljust(48, b'\x00')
    body += rtmr0[:48].ljust(48, b'\x00')
    body += rtmr1[:48].ljust(48, b'\x00')
    body += rtmr2[:48].ljust(48, b'\x00')
    body += rtmr3[:48].ljust(48, b'\x00')
    body += report_data[:64].ljust(64, b'\x00')
    assert len(body) == TD_QUOTE_BODY_SIZE
    return body


def build_signed_data(
    signature: bytes = b'\x55' * 64,
    attestation_key: bytes = b'\x66' * 64,
    cert_type: int = CERT_DATA_TYPE_QE_REPORT,
    cert_payload: bytes = b'\x77' * 40,
) -> bytes:
    """Build the signed data section: signature, key, certification data."""
    cert_data = struct.pack('<H', cert_type) + struct.pack('<I', len(cert_payload)) + cert_payload
    return signature + attestation_key + cert_data


def build_quote(
    header: bytes | None = None,
    body: bytes | None = None,
    signed_data: bytes | None = None,
) -> bytes:
    """Build a complete synthetic raw TDX quote."""
    if header is None:
        header = build_header()
    if body is None:
        body = build_td_quote_body()
    if signed_data is None:
        signed_data = build_signed_data()

    return header + body + struct.pack('<I', len(signed_data)) + signed_data


# =============================================================================
# Header Parsing Tests
# =============================================================================

class TestParseHeader:
    """Test TDX header parsing."""

    def test_parse_valid_header(self):
        """Test parsing a valid TDX header."""
        header = _parse_header(build_header())

        assert header.version == QUOTE_VERSION_V4
        assert header.attestation_key_type == ATTESTATION_KEY_TYPE_ECDSA_P256
        assert header.tee_type == TEE_TDX
        assert header.qe_svn == b'\x08\x00'
        assert header.pce_svn == b'\x0d\x00'
        assert header.qe_vendor_id == INTEL_QE_VENDOR_ID
        assert header.user_data == b'\x00' * 20

    def test_header_too_short(self):
        """Test that a truncated header is rejected."""
        with pytest.raises(TdxQuoteParseError, match="Header too short"):
            _parse_header(b'\x00' * 47)

    def test_header_str(self):
        """Test header string rendering."""
        header = _parse_header(build_header())
        assert "tee_type=0x81" in str(header)


# =============================================================================
# Body Parsing Tests
# =============================================================================

class TestParseTdQuoteBody:
    """Test TD quote body parsing."""

    def test_parse_valid_body(self):
        """Test that every body field lands at its offset."""
        body = _parse_td_quote_body(build_td_quote_body())

        assert body.tee_tcb_svn == b'\x03' + b'\x00' * 15
        assert body.mr_seam == b'\xaa' * 48
        assert body.td_attributes == b'\x00\x00\x00\x10\x00\x00\x00\x00'
        assert body.xfam == b'\xe7\x02\x06\x00\x00\x00\x00\x00'
        assert body.mr_td == b'\x11' * 48
        assert body.mr_config_id == b'\x12' * 48
        assert body.mr_owner == b'\x13' * 48
        assert body.mr_owner_config == b'\x14' * 48
        assert body.rtmrs == [b'\x22' * 48, b'\x33' * 48, b'\x44' * 48, b'\x00' * 48]
        assert body.report_data == b'\xab' * 32 + b'\xcd' * 32

    def test_body_too_short(self):
        """Test that a truncated body is rejected."""
        with pytest.raises(TdxQuoteParseError, match="TD quote body too short"):
            _parse_td_quote_body(b'\x00' * (TD_QUOTE_BODY_SIZE - 1))


# =============================================================================
# Full Quote Parsing Tests
# =============================================================================

class TestParseQuote:
    """Test complete quote parsing."""

    def test_parse_valid_quote(self):
        """Test parsing a complete valid quote."""
        quote = parse_quote(build_quote())

        assert isinstance(quote, QuoteV4)
        assert quote.header.version == QUOTE_VERSION_V4
        assert len(quote.td_quote_body.rtmrs) == RTMR_COUNT
        assert quote.signed_data.signature == b'\x55' * 64
        assert quote.signed_data.attestation_key == b'\x66' * 64
        assert quote.signed_data.certification_data.cert_type == CERT_DATA_TYPE_QE_REPORT
        assert quote.signed_data.certification_data.data == b'\x77' * 40
        assert quote.extra_bytes == b''

    def test_quote_too_short(self):
        """Test that short quotes are rejected."""
        with pytest.raises(TdxQuoteParseError, match="Quote too short"):
            parse_quote(b'\x00' * (QUOTE_MIN_SIZE - 1))

    def test_wrong_version(self):
        """Test that non-V4 quotes are rejected."""
        raw = build_quote(header=build_header(version=5))
        with pytest.raises(TdxQuoteParseError, match="Unsupported quote version"):
            parse_quote(raw)

    def test_wrong_attestation_key_type(self):
        """Test that non-ECDSA-P256 quotes are rejected."""
        raw = build_quote(header=build_header(attestation_key_type=3))
        with pytest.raises(TdxQuoteParseError, match="Unsupported attestation key type"):
            parse_quote(raw)

    def test_wrong_tee_type(self):
        """Test that SGX quotes are rejected."""
        raw = build_quote(header=build_header(tee_type=0))
        with pytest.raises(TdxQuoteParseError, match="Invalid TEE type"):
            parse_quote(raw)

    def test_truncated_signed_data(self):
        """Test that a declared signed data size beyond the buffer is rejected."""
        raw = build_quote()
        with pytest.raises(TdxQuoteParseError, match="Quote truncated"):
            parse_quote(raw[:-1])

    def test_certification_size_mismatch(self):
        """Test that inconsistent certification data sizes are rejected."""
        signed = build_signed_data()
        # Declare one byte more than present
        signed = signed[:130] + struct.pack('<I', 41) + signed[134:]
        with pytest.raises(TdxQuoteParseError, match="size mismatch"):
            parse_quote(build_quote(signed_data=signed))

    def test_extra_bytes_preserved(self):
        """Test that trailing bytes after signed data are kept."""
        quote = parse_quote(build_quote() + b'trailing')
        assert quote.extra_bytes == b'trailing'


# =============================================================================
# Serialization Tests
# =============================================================================

class TestAbiSerialization:
    """Test canonical -> wire serialization."""

    def test_header_matches_wire_bytes(self):
        """Test that a parsed header serializes to the exact original bytes."""
        header_bytes = build_header(user_data=b'user' * 5)
        assert header_to_abi_bytes(_parse_header(header_bytes)) == header_bytes

    def test_body_matches_wire_bytes(self):
        """Test that a parsed body serializes to the exact original bytes."""
        body_bytes = build_td_quote_body(mr_signer_seam=b'\x5a' * 48)
        assert td_quote_body_to_abi_bytes(_parse_td_quote_body(body_bytes)) == body_bytes

    def test_wrong_field_size_rejected(self):
        """Test that a field of the wrong width cannot be serialized."""
        body = _parse_td_quote_body(build_td_quote_body())
        body.mr_td = b'\x11' * 47
        with pytest.raises(TdxQuoteEncodeError, match="mr_td is 47 bytes"):
            td_quote_body_to_abi_bytes(body)

    def test_missing_rtmrs_rejected(self):
        """Test that a body without four RTMRs cannot be serialized."""
        body = _parse_td_quote_body(build_td_quote_body())
        body.rtmrs = body.rtmrs[:3]
        with pytest.raises(TdxQuoteEncodeError, match="3 RTMRs"):
            td_quote_body_to_abi_bytes(body)

    def test_header_integer_out_of_range(self):
        """Test that an oversized header integer cannot be serialized."""
        header = _parse_header(build_header())
        header.version = 0x10000
        with pytest.raises(TdxQuoteEncodeError, match="out of range"):
            header_to_abi_bytes(header)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
