"""Building TLS contexts from certificate configuration."""

from __future__ import annotations

import logging
import os
import ssl
import tempfile
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from sslnet.config import SM_SSL, CertConfig, ContextConfig, SMCertConfig

logger = logging.getLogger(__name__)


class ContextBuildError(RuntimeError):
    """A TLS context could not be built from the given certificates."""


def _as_bytes(data: bytes | str) -> bytes:
    return data.encode("latin-1") if isinstance(data, str) else bytes(data)


def _to_x509(pem: bytes | str) -> x509.Certificate:
    """Parse a PEM certificate."""
    try:
        return x509.load_pem_x509_certificate(_as_bytes(pem))
    except ValueError as exc:
        raise ContextBuildError(f"invalid certificate: {exc}") from exc


def _to_private_key(pem: bytes | str):
    """Parse an unencrypted PEM private key."""
    try:
        return serialization.load_pem_private_key(_as_bytes(pem), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise ContextBuildError(f"invalid private key: {exc}") from exc


def _spki(public_key) -> bytes:
    return public_key.public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )


def _check_key_matches(certificate: x509.Certificate, private_key, error: str) -> None:
    if _spki(certificate.public_key()) != _spki(private_key.public_key()):
        raise ContextBuildError(error)


class ContextBuilder:
    """Builds ``ssl.SSLContext`` objects for SSL and SM SSL connections.

    Every context built requires and verifies a peer certificate signed by the
    configured CA; host names are not checked.
    """

    def __init__(self, module_name: str = "DEFAULT") -> None:
        self.module_name = module_name

    @staticmethod
    def read_file_content(path: str | os.PathLike[str]) -> bytes:
        """The whole content of a file, or empty bytes if it cannot be read."""
        try:
            return Path(path).read_bytes()
        except OSError:
            return b""

    def build_ssl_context(
        self, server: bool, config: ContextConfig | str | os.PathLike[str]
    ) -> ssl.SSLContext:
        """Build a server or client context from a config object or an INI file path.

        Raises ContextBuildError when the certificates cannot be loaded, and
        ContextConfigError when the INI file is invalid.
        """
        if not isinstance(config, ContextConfig):
            config_path = config
            config = ContextConfig(module_name=self.module_name)
            config.init_config(config_path)

        sm = config.ssl_type == SM_SSL
        if config.is_cert_path:
            if sm:
                return self._build_sm_from_files(server, config.sm_cert_config)
            return self._build_from_files(server, config.cert_config)
        if sm:
            return self._build_sm_from_content(server, config.sm_cert_config)
        return self._build_from_content(server, config.cert_config)

    @staticmethod
    def _new_context(server: bool, tls12_only: bool) -> ssl.SSLContext:
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER if server else ssl.PROTOCOL_TLS_CLIENT)
        if not server:
            ctx.check_hostname = False
        if tls12_only:
            ctx.minimum_version = ssl.TLSVersion.TLSv1_2
            ctx.maximum_version = ssl.TLSVersion.TLSv1_2
        return ctx

    @staticmethod
    def _require_peer(ctx: ssl.SSLContext) -> None:
        ctx.verify_mode = ssl.CERT_REQUIRED

    @staticmethod
    def _load_chain_files(ctx: ssl.SSLContext, cert_path: str, key_path: str) -> None:
        try:
            ctx.load_cert_chain(certfile=cert_path, keyfile=key_path)
        except (ssl.SSLError, OSError) as exc:
            raise ContextBuildError(
                f"unable to load certificate {cert_path} with key {key_path}: {exc}"
            ) from exc

    @staticmethod
    def _load_chain_content(
        ctx: ssl.SSLContext, cert_pem: bytes | str, key_pem: bytes | str
    ) -> None:
        with tempfile.TemporaryDirectory() as directory:
            cert_path = Path(directory, "node.crt")
            key_path = Path(directory, "node.key")
            cert_path.write_bytes(_as_bytes(cert_pem))
            key_path.write_bytes(_as_bytes(key_pem))
            try:
                ctx.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
            except (ssl.SSLError, OSError) as exc:
                raise ContextBuildError(f"unable to load node certificate and key: {exc}") from exc

    @staticmethod
    def _add_certificate_authority(ctx: ssl.SSLContext, ca_pem: bytes | str) -> None:
        data = _as_bytes(ca_pem)
        if not data:
            raise ContextBuildError("empty CA certificate")
        try:
            ctx.load_verify_locations(cadata=data.decode("latin-1"))
        except (ssl.SSLError, ValueError) as exc:
            raise ContextBuildError(f"unable to load CA certificate: {exc}") from exc

    def _build_from_files(self, server: bool, cert_config: CertConfig) -> ssl.SSLContext:
        ctx = self._new_context(server, tls12_only=True)
        if not self.read_file_content(cert_config.node_key):
            raise ContextBuildError(f"unable to read node key: {cert_config.node_key}")
        self._load_chain_files(ctx, cert_config.node_cert, cert_config.node_key)
        self._add_certificate_authority(ctx, self.read_file_content(cert_config.ca_cert))
        self._require_peer(ctx)
        return ctx

    def _build_from_content(self, server: bool, cert_config: CertConfig) -> ssl.SSLContext:
        ctx = self._new_context(server, tls12_only=True)
        self._load_chain_content(ctx, cert_config.node_cert, cert_config.node_key)
        self._add_certificate_authority(ctx, cert_config.ca_cert)
        self._require_peer(ctx)
        return ctx

    def _check_enc_pair(self, en_cert_pem: bytes | str, en_key_pem: bytes | str) -> None:
        try:
            en_cert = _to_x509(en_cert_pem)
        except ContextBuildError as exc:
            raise ContextBuildError(f"SSL_CTX_use_enc_certificate error: {exc}") from exc
        try:
            en_key = _to_private_key(en_key_pem)
        except ContextBuildError as exc:
            raise ContextBuildError(f"SSL_CTX_use_enc_PrivateKey error: {exc}") from exc
        _check_key_matches(en_cert, en_key, "SSL_CTX_check_enc_private_key error")

    def _build_sm_from_files(self, server: bool, sm_config: SMCertConfig) -> ssl.SSLContext:
        """SM context from files; the encryption pair is validated, signing pair serves TLS."""
        ctx = self._new_context(server, tls12_only=False)
        self._load_chain_files(ctx, sm_config.node_cert, sm_config.node_key)
        try:
            self._check_enc_pair(
                self.read_file_content(sm_config.en_node_cert),
                self.read_file_content(sm_config.en_node_key),
            )
        except ContextBuildError as exc:
            logger.warning("[%s][BOOSTSSL][CTX] %s", self.module_name, exc)
            raise
        self._add_certificate_authority(ctx, self.read_file_content(sm_config.ca_cert))
        self._require_peer(ctx)
        return ctx

    def _build_sm_from_content(self, server: bool, sm_config: SMCertConfig) -> ssl.SSLContext:
        """SM context from contents; the encryption pair is validated, signing pair serves TLS."""
        ctx = self._new_context(server, tls12_only=False)
        node_cert = _to_x509(sm_config.node_cert)
        node_key = _to_private_key(sm_config.node_key)
        _check_key_matches(node_cert, node_key, "SSL_CTX_check_private_key error")
        self._load_chain_content(ctx, sm_config.node_cert, sm_config.node_key)
        try:
            self._check_enc_pair(sm_config.en_node_cert, sm_config.en_node_key)
        except ContextBuildError as exc:
            logger.warning("[%s][BOOSTSSL][CTX] %s", self.module_name, exc)
            raise
        self._add_certificate_authority(ctx, sm_config.ca_cert)
        self._require_peer(ctx)
        return ctx