"""
Unit tests for report rendering (report.py).
"""

import pytest

from tdx_rtmr.attestation.abi_tdx import parse_quote
from tdx_rtmr.attestation.inspection import inspect_quote
from tdx_rtmr.attestation.td_report import TDReport
from tdx_rtmr.report import (
    UNINITIALIZED_MARKER,
    format_inspection,
    format_register,
    format_rtmr1,
    format_td_report,
)

from test_proto_tdx import build_proto_quote
from test_tdx_abi import build_quote
from test_tdx_verify import build_signed_quote, flip_bit


class TestFormatRegister:
    """Test register rendering."""

    def test_all_zero_is_uninitialized(self):
        """Test that an all-zero register renders as the marker."""
        assert format_register(b'\x00' * 48) == UNINITIALIZED_MARKER

    def test_last_byte_set_is_hex(self):
        """Test that a single non-zero byte renders the full hex string."""
        value = b'\x00' * 47 + b'\x01'
        assert format_register(value) == "00" * 47 + "01"

    def test_first_byte_set_is_hex(self):
        assert format_register(b'\x80' + b'\x00' * 47) == "80" + "00" * 47


class TestFormatTdReport:
    """Test the register section."""

    def test_rtmr_lines(self):
        """Test one line per RTMR, zeros shown as uninitialized."""
        report = TDReport(rtmr1=b'\xab' * 48)
        text = format_td_report(report)

        assert f"RTMR[0]: {UNINITIALIZED_MARKER}" in text
        assert f"RTMR[1]: {'ab' * 48}" in text
        assert f"RTMR[3]: {UNINITIALIZED_MARKER}" in text

    def test_mr_fields_and_meanings(self):
        """Test that MR* registers and RTMR meanings are listed."""
        report = TDReport(mr_td=b'\x11' * 48)
        text = format_td_report(report)

        assert f"MrTd (Trust Domain Measurement): {'11' * 48}" in text
        assert f"MrConfigId: {'00' * 48}" in text
        assert "RTMR[1]: OS kernel, boot parameters, initrd" in text


class TestFormatInspection:
    """Test rendering of full inspection results."""

    def test_valid_quote(self):
        """Test the report for a structurally valid, correctly signed quote."""
        raw = build_signed_quote()
        text = format_inspection(inspect_quote(raw))

        assert f"Quote file size: {len(raw)} bytes" in text
        assert "Detected raw QuoteV4 (ABI converted) format" in text
        assert "Quote Version: 4" in text
        assert "TEE Type: 0x00000081" in text
        assert "✅ ECDSA P-256 signature format detected" in text
        assert "✅ Public key is valid P-256 point" in text
        assert "Signed payload length: 632 bytes" in text
        assert "✅ Signature verification PASSED" in text
        assert f"RTMR[1]: {'33' * 48}" in text
        assert f"RTMR[3]: {UNINITIALIZED_MARKER}" in text

    def test_failed_signature(self):
        """Test that a failed signature is reported with possible causes."""
        text = format_inspection(inspect_quote(flip_bit(build_signed_quote(), 100)))

        assert "❌ Signature verification FAILED" in text
        assert "Quote has been tampered with" in text
        assert "Runtime TD Report RTMR Values:" in text

    def test_off_curve_key(self):
        """Test that an off-curve key stops the signature section early."""
        # build_quote uses a constant 0x66 key, which is not a P-256 point
        text = format_inspection(inspect_quote(build_quote()))

        assert "❌ Public key is not on P-256 curve" in text
        assert "Signed payload length" not in text

    def test_missing_signed_data(self):
        """Test that a protobuf quote without signed data says so."""
        quote = parse_quote(build_signed_quote())
        quote.signed_data = None
        text = format_inspection(inspect_quote(build_proto_quote(quote)))

        assert "Detected protobuf QuoteV4 format" in text
        assert "❌ No signed data found" in text
        assert "Signature Validation" not in text

    def test_raw_fallback(self):
        """Test that raw quotes skip the structure and signature sections."""
        data = b'\xff' * 48 + build_quote()[48:]
        text = format_inspection(inspect_quote(data))

        assert "Detected raw quote (manual parsing) format" in text
        assert "signature not verified" in text
        assert "Quote Structure Validation" not in text


class TestFormatRtmr1:
    """Test RTMR[1] rendering."""

    def test_format(self):
        assert format_rtmr1(b'\x01' * 48) == "RTMR[1] = " + "01" * 48


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
