"""
Protobuf container encoding of TDX quotes.

Quotes fetched through attestation agents are frequently shipped as a
serialized ``tdx.QuoteV4`` protobuf message (the schema used by
go-tdx-guest) instead of the raw QuoteV4 wire bytes. The schema is built at
import time from a ``FileDescriptorProto`` so no generated ``_pb2`` module
is needed.

Within ``CertificationData``, the ``qe_report_certification_data`` field is
declared as ``bytes``. It shares the length-delimited wire type with the
upstream nested QE report message, so it parses unchanged while staying
opaque here.
"""

from typing import Optional

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError, Message

from .abi_tdx import (
    CertificationData,
    QuoteV4,
    SignedData,
    TdQuoteBody,
    TdxHeader,
)

_FIELD = descriptor_pb2.FieldDescriptorProto

_PACKAGE = "tdx"
_FILE_NAME = "tdx_rtmr/tdx.proto"


class TdxProtoDecodeError(Exception):
    """Raised when bytes are not a usable protobuf QuoteV4 message."""
    pass


def _scalar(name: str, number: int, field_type: int, repeated: bool = False) -> _FIELD:
    label = _FIELD.LABEL_REPEATED if repeated else _FIELD.LABEL_OPTIONAL
    return _FIELD(name=name, number=number, type=field_type, label=label)


def _message(name: str, number: int, message_name: str) -> _FIELD:
    return _FIELD(
        name=name,
        number=number,
        type=_FIELD.TYPE_MESSAGE,
        label=_FIELD.LABEL_OPTIONAL,
        type_name=f".{_PACKAGE}.{message_name}",
    )


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    b = _FIELD.TYPE_BYTES
    u32 = _FIELD.TYPE_UINT32

    file_proto = descriptor_pb2.FileDescriptorProto(
        name=_FILE_NAME, package=_PACKAGE, syntax="proto3"
    )
    file_proto.message_type.add(
        name="Header",
        field=[
            _scalar("version", 1, u32),
            _scalar("attestation_key_type", 2, u32),
            _scalar("tee_type", 3, u32),
            _scalar("qe_svn", 4, b),
            _scalar("pce_svn", 5, b),
            _scalar("qe_vendor_id", 6, b),
            _scalar("user_data", 7, b),
        ],
    )
    file_proto.message_type.add(
        name="TDQuoteBody",
        field=[
            _scalar("tee_tcb_svn", 1, b),
            _scalar("mr_seam", 2, b),
            _scalar("mr_signer_seam", 3, b),
            _scalar("seam_attributes", 4, b),
            _scalar("td_attributes", 5, b),
            _scalar("xfam", 6, b),
            _scalar("mr_td", 7, b),
            _scalar("mr_config_id", 8, b),
            _scalar("mr_owner", 9, b),
            _scalar("mr_owner_config", 10, b),
            _scalar("rtmrs", 11, b, repeated=True),
            _scalar("report_data", 12, b),
        ],
    )
    file_proto.message_type.add(
        name="CertificationData",
        field=[
            _scalar("certificate_data_type", 1, u32),
            _scalar("size", 2, u32),
            _scalar("qe_report_certification_data", 3, b),
        ],
    )
    file_proto.message_type.add(
        name="Ecdsa256BitQuoteV4AuthData",
        field=[
            _scalar("signature", 1, b),
            _scalar("ecdsa_attestation_key", 2, b),
            _message("certification_data", 3, "CertificationData"),
        ],
    )
    file_proto.message_type.add(
        name="QuoteV4",
        field=[
            _message("header", 1, "Header"),
            _message("td_quote_body", 2, "TDQuoteBody"),
            _scalar("signed_data_size", 3, u32),
            _message("signed_data", 4, "Ecdsa256BitQuoteV4AuthData"),
            _scalar("extra_bytes", 5, b),
        ],
    )
    return file_proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_build_file_descriptor().SerializeToString())

QuoteV4Proto = message_factory.GetMessageClass(
    _POOL.FindMessageTypeByName(f"{_PACKAGE}.QuoteV4")
)


def _signed_data_from_proto(message: Message) -> Optional[SignedData]:
    if not message.HasField("signed_data"):
        return None

    signed = message.signed_data
    cert = signed.certification_data
    return SignedData(
        signature=bytes(signed.signature),
        attestation_key=bytes(signed.ecdsa_attestation_key),
        certification_data=CertificationData(
            cert_type=cert.certificate_data_type,
            cert_data_size=cert.size,
            data=bytes(cert.qe_report_certification_data),
        ),
    )


def quote_from_proto(message: Message) -> QuoteV4:
    """
    Convert a ``tdx.QuoteV4`` message into the canonical dataclasses.

    ``signed_data`` is None when the message carries no signed data block.
    """
    header = message.header
    body = message.td_quote_body

    return QuoteV4(
        header=TdxHeader(
            version=header.version,
            attestation_key_type=header.attestation_key_type,
            tee_type=header.tee_type,
            qe_svn=bytes(header.qe_svn),
            pce_svn=bytes(header.pce_svn),
            qe_vendor_id=bytes(header.qe_vendor_id),
            user_data=bytes(header.user_data),
        ),
        td_quote_body=TdQuoteBody(
            tee_tcb_svn=bytes(body.tee_tcb_svn),
            mr_seam=bytes(body.mr_seam),
            mr_signer_seam=bytes(body.mr_signer_seam),
            seam_attributes=bytes(body.seam_attributes),
            td_attributes=bytes(body.td_attributes),
            xfam=bytes(body.xfam),
            mr_td=bytes(body.mr_td),
            mr_config_id=bytes(body.mr_config_id),
            mr_owner=bytes(body.mr_owner),
            mr_owner_config=bytes(body.mr_owner_config),
            rtmrs=[bytes(rtmr) for rtmr in body.rtmrs],
            report_data=bytes(body.report_data),
        ),
        signed_data_size=message.signed_data_size,
        signed_data=_signed_data_from_proto(message),
        extra_bytes=bytes(message.extra_bytes),
    )


def parse_proto_quote(data: bytes) -> QuoteV4:
    """
    Parse a serialized ``tdx.QuoteV4`` message.

    A message only counts as a quote if it carries both a header and a TD
    quote body; the empty message (which any empty buffer decodes to) and
    stray messages are rejected.

    Raises:
        TdxProtoDecodeError: If the bytes are not a well-formed quote message
    """
    message = QuoteV4Proto()
    try:
        message.ParseFromString(data)
    except DecodeError as e:
        raise TdxProtoDecodeError(f"Not a protobuf QuoteV4 message: {e}") from e

    if not message.HasField("header"):
        raise TdxProtoDecodeError("Protobuf QuoteV4 message has no header")
    if not message.HasField("td_quote_body"):
        raise TdxProtoDecodeError("Protobuf QuoteV4 message has no TD quote body")

    return quote_from_proto(message)
