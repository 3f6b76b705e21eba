"""
Offline TDX quote signature verification.

The quote signature is ECDSA-P256 over SHA256(Header || TdQuoteBody), where
both parts are in their QuoteV4 wire encoding. The signed payload is rebuilt
from the canonical quote, so quotes decoded from the protobuf container are
checked against the same bytes the quoting enclave signed.

Only the signature itself is checked. Whether the attestation key is
trustworthy (PCK chain, QE report binding, revocation) is not established
here.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, encode_dss_signature

from .abi_tdx import (
    ATTESTATION_KEY_SIZE,
    ECDSA_P256_COMPONENT_SIZE,
    SIGNATURE_SIZE,
    QuoteV4,
    TdxQuoteEncodeError,
    header_to_abi_bytes,
    td_quote_body_to_abi_bytes,
)

logger = logging.getLogger(__name__)


class TdxVerificationError(Exception):
    """Raised when TDX quote signature verification cannot succeed."""
    pass


class PublicKeyNotOnCurveError(TdxVerificationError):
    """Raised when the attestation key is not a point on P-256."""
    pass


class PayloadReconstructionError(TdxVerificationError):
    """Raised when the signed Header || TdQuoteBody bytes cannot be rebuilt."""
    pass


class SignatureVerificationFailedError(TdxVerificationError):
    """Raised when the signature does not match the payload and key."""
    pass


@dataclass
class SignatureVerification:
    """
    Verdict of the offline signature check plus the values it was based on.

    ``error`` holds the failure reason when ``valid`` is False. Component
    fields are filled in as far as the check progressed.
    """
    valid: bool
    error: Optional[str] = None
    r: Optional[int] = None
    s: Optional[int] = None
    x: Optional[int] = None
    y: Optional[int] = None
    on_curve: Optional[bool] = None
    payload_size: Optional[int] = None
    payload_hash: Optional[bytes] = None


def split_signature(sig_bytes: bytes) -> tuple[int, int]:
    """
    Split a raw 64-byte R || S signature into big-endian integers.

    Raises:
        TdxVerificationError: If the signature is not 64 bytes
    """
    if len(sig_bytes) != SIGNATURE_SIZE:
        raise TdxVerificationError(
            f"Signature is {len(sig_bytes)} bytes, expected {SIGNATURE_SIZE}"
        )

    r = int.from_bytes(sig_bytes[0:ECDSA_P256_COMPONENT_SIZE], byteorder='big')
    s = int.from_bytes(sig_bytes[ECDSA_P256_COMPONENT_SIZE:SIGNATURE_SIZE], byteorder='big')
    return r, s


def split_public_key(key_bytes: bytes) -> tuple[int, int]:
    """
    Split a raw 64-byte X || Y public key into big-endian integers.

    Raises:
        TdxVerificationError: If the key is not 64 bytes
    """
    if len(key_bytes) != ATTESTATION_KEY_SIZE:
        raise TdxVerificationError(
            f"Attestation key is {len(key_bytes)} bytes, expected {ATTESTATION_KEY_SIZE}"
        )

    x = int.from_bytes(key_bytes[0:ECDSA_P256_COMPONENT_SIZE], byteorder='big')
    y = int.from_bytes(key_bytes[ECDSA_P256_COMPONENT_SIZE:ATTESTATION_KEY_SIZE], byteorder='big')
    return x, y


def _bytes_to_p256_pubkey(key_bytes: bytes) -> ec.EllipticCurvePublicKey:
    """
    Convert a raw 64-byte X || Y key to a P-256 public key object.

    Raises:
        PublicKeyNotOnCurveError: If the point is not on the curve
    """
    # Uncompressed point format (0x04 || X || Y)
    uncompressed = b'\x04' + key_bytes

    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(
            ec.SECP256R1(), uncompressed
        )
    except ValueError as e:
        raise PublicKeyNotOnCurveError(f"Public key is not on P-256 curve: {e}") from e


def build_signed_payload(quote: QuoteV4) -> bytes:
    """
    Rebuild the signed region Header || TdQuoteBody in wire encoding.

    Raises:
        PayloadReconstructionError: If either part is missing or malformed
    """
    if quote.header is None or quote.td_quote_body is None:
        raise PayloadReconstructionError("Quote has no header or TD quote body")

    try:
        header_bytes = header_to_abi_bytes(quote.header)
    except TdxQuoteEncodeError as e:
        raise PayloadReconstructionError(f"Could not convert header to ABI bytes: {e}") from e

    try:
        body_bytes = td_quote_body_to_abi_bytes(quote.td_quote_body)
    except TdxQuoteEncodeError as e:
        raise PayloadReconstructionError(
            f"Could not convert TD quote body to ABI bytes: {e}"
        ) from e

    return header_bytes + body_bytes


def _verify_ecdsa(
    public_key: ec.EllipticCurvePublicKey, r: int, s: int, message_hash: bytes
) -> bool:
    try:
        public_key.verify(
            encode_dss_signature(r, s),
            message_hash,
            ec.ECDSA(Prehashed(hashes.SHA256())),
        )
    except InvalidSignature:
        return False
    return True


def check_quote_signature(quote: QuoteV4, result: Optional[SignatureVerification] = None) -> None:
    """
    Verify the quote signature, raising on any failure.

    If ``result`` is given, the intermediate values are recorded in it as
    the check progresses.

    Raises:
        PublicKeyNotOnCurveError: If the attestation key is not on P-256
        PayloadReconstructionError: If the signed payload cannot be rebuilt
        SignatureVerificationFailedError: If the signature does not verify
        TdxVerificationError: If signature or key have the wrong size
    """
    if result is None:
        result = SignatureVerification(valid=False)

    if quote.signed_data is None:
        raise TdxVerificationError("Quote has no signed data")

    result.r, result.s = split_signature(quote.signed_data.signature)
    result.x, result.y = split_public_key(quote.signed_data.attestation_key)

    result.on_curve = False
    public_key = _bytes_to_p256_pubkey(quote.signed_data.attestation_key)
    result.on_curve = True

    payload = build_signed_payload(quote)
    result.payload_size = len(payload)
    result.payload_hash = hashlib.sha256(payload).digest()

    if not _verify_ecdsa(public_key, result.r, result.s, result.payload_hash):
        raise SignatureVerificationFailedError(
            "Quote signature verification failed: signature does not match"
        )

    result.valid = True


def verify_quote_signature(quote: QuoteV4) -> SignatureVerification:
    """
    Verify the quote signature and report the verdict without raising.

    A failed check is logged as a warning; callers decide whether it is
    fatal.
    """
    result = SignatureVerification(valid=False)
    try:
        check_quote_signature(quote, result)
    except TdxVerificationError as e:
        logger.warning("%s", e)
        result.valid = False
        result.error = str(e)
    return result
