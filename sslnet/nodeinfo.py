"""Node identity taken from the public key of an X.509 certificate."""

from __future__ import annotations

import logging
import os
from typing import Protocol

from cryptography import x509

logger = logging.getLogger(__name__)

_SEQUENCE = 0x30
_BIT_STRING = 0x03
_VERSION_TAG = 0xA0
# serial number, signature algorithm, issuer, validity, subject
_FIELDS_BEFORE_SPKI = 5


class _PeerCertSource(Protocol):
    def getpeercert(self, binary_form: bool = ...) -> object: ...


def _read_tlv(data: bytes, offset: int) -> tuple[int, bytes, int]:
    """Read one DER element; return its tag, its contents and the offset after it."""
    if offset + 2 > len(data):
        raise ValueError("truncated DER element")
    tag = data[offset]
    length = data[offset + 1]
    offset += 2
    if length & 0x80:
        count = length & 0x7F
        if count == 0 or offset + count > len(data):
            raise ValueError("invalid DER length")
        length = int.from_bytes(data[offset:offset + count], "big")
        offset += count
    end = offset + length
    if end > len(data):
        raise ValueError("truncated DER element")
    return tag, data[offset:end], end


def _elements(data: bytes):
    offset = 0
    while offset < len(data):
        tag, content, offset = _read_tlv(data, offset)
        yield tag, content


def _public_key_bits(tbs_certificate: bytes) -> bytes:
    """The bit string of the subjectPublicKeyInfo in a DER TBSCertificate."""
    tag, body, _ = _read_tlv(tbs_certificate, 0)
    if tag != _SEQUENCE:
        raise ValueError("TBSCertificate is not a sequence")
    fields = [(t, c) for t, c in _elements(body)]
    if fields and fields[0][0] == _VERSION_TAG:
        fields = fields[1:]
    if len(fields) <= _FIELDS_BEFORE_SPKI:
        raise ValueError("certificate has no subject public key info")
    spki_tag, spki = fields[_FIELDS_BEFORE_SPKI]
    if spki_tag != _SEQUENCE:
        raise ValueError("subject public key info is not a sequence")
    spki_fields = list(_elements(spki))
    if len(spki_fields) < 2 or spki_fields[1][0] != _BIT_STRING or not spki_fields[1][1]:
        raise ValueError("subject public key is not a bit string")
    # the first content byte counts the unused bits
    return spki_fields[1][1][1:]


def _load_certificate(certificate: x509.Certificate | bytes | str) -> x509.Certificate:
    if isinstance(certificate, x509.Certificate):
        return certificate
    data = certificate.encode("ascii") if isinstance(certificate, str) else bytes(certificate)
    if b"-----BEGIN" in data:
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


def certificate_pub_hex(certificate: x509.Certificate | bytes | str) -> str:
    """Hex of the public key bits of a certificate, given as object, PEM or DER.

    Raises ValueError if the certificate cannot be read.
    """
    cert = _load_certificate(certificate)
    pub_hex = _public_key_bits(cert.tbs_certificate_bytes).hex()
    logger.info("[BOOSTSSL][NODEINFO] SSLContext pubHex: %s", pub_hex)
    return pub_hex


def cert_file_pub_hex(cert_path: str | os.PathLike[str]) -> str:
    """Hex of the public key bits of the PEM certificate in ``cert_path``.

    Raises ValueError if the file is missing, empty or not a certificate.
    """
    path = os.fspath(cert_path)
    try:
        with open(path, "rb") as stream:
            content = stream.read()
    except OSError as exc:
        raise ValueError(f"unable to load cert content, cert: {path}") from exc
    if not content:
        raise ValueError(f"unable to load cert content, cert: {path}")
    try:
        cert = x509.load_pem_x509_certificate(content)
    except ValueError as exc:
        logger.warning("[BOOSTSSL][NODEINFO] cert=%s errorMessage=%s", path, exc)
        raise ValueError(f"PEM_read_bio_X509 error, cert: {path}") from exc
    pub_hex = certificate_pub_hex(cert)
    logger.info("[BOOSTSSL][NODEINFO] cert=%s pubHex=%s", path, pub_hex)
    return pub_hex


def peer_node_id(ssl_object: _PeerCertSource) -> str | None:
    """Node id of the peer of an SSL socket or object; None if it has no usable cert."""
    der = ssl_object.getpeercert(binary_form=True)
    if not der:
        logger.warning("[BOOSTSSL][NODEINFO] Get cert failed")
        return None
    try:
        cert = x509.load_der_x509_certificate(bytes(der))
        node_id = certificate_pub_hex(cert)
    except ValueError as exc:
        logger.warning("[BOOSTSSL][NODEINFO] Cert verify failed: %s", exc)
        return None
    try:
        constraints = cert.extensions.get_extension_for_class(x509.BasicConstraints).value
        if constraints.ca:
            logger.debug("[BOOSTSSL][NODEINFO] Ignore CA certificate")
    except x509.ExtensionNotFound:
        logger.warning("[BOOSTSSL][NODEINFO] Get ca basic failed")
    return node_id