import datetime
import ssl

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from sslnet.builder import ContextBuildError, ContextBuilder
from sslnet.config import CertConfig, ContextConfig, SMCertConfig


def _make_cert(cn, key, issuer_cert=None, issuer_key=None, ca=False):
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cn)])
    now = datetime.datetime.now(datetime.timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(issuer_cert.subject if issuer_cert is not None else name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    return builder.sign(issuer_key if issuer_key is not None else key, hashes.SHA256())


def _key_pem(key):
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


@pytest.fixture(scope="module")
def certs(tmp_path_factory):
    directory = tmp_path_factory.mktemp("certs")
    ca_key = ec.generate_private_key(ec.SECP256R1())
    ca_cert = _make_cert("test-ca", ca_key, ca=True)
    node_key = ec.generate_private_key(ec.SECP256R1())
    node_cert = _make_cert("test-node", node_key, ca_cert, ca_key)
    en_key = ec.generate_private_key(ec.SECP256R1())
    en_cert = _make_cert("test-ennode", en_key, ca_cert, ca_key)
    other_key = ec.generate_private_key(ec.SECP256R1())

    pems = {
        "ca.crt": ca_cert.public_bytes(serialization.Encoding.PEM),
        "node.crt": node_cert.public_bytes(serialization.Encoding.PEM),
        "node.key": _key_pem(node_key),
        "sm_ca.crt": ca_cert.public_bytes(serialization.Encoding.PEM),
        "sm_node.crt": node_cert.public_bytes(serialization.Encoding.PEM),
        "sm_node.key": _key_pem(node_key),
        "sm_ennode.crt": en_cert.public_bytes(serialization.Encoding.PEM),
        "sm_ennode.key": _key_pem(en_key),
        "other.key": _key_pem(other_key),
    }
    for name, data in pems.items():
        (directory / name).write_bytes(data)
    return {
        "dir": directory,
        "pems": pems,
        "node_der": node_cert.public_bytes(serialization.Encoding.DER),
    }


def _path_config(certs, **overrides):
    d = certs["dir"]
    values = {
        "ca_cert": str(d / "ca.crt"),
        "node_cert": str(d / "node.crt"),
        "node_key": str(d / "node.key"),
    }
    values.update(overrides)
    return ContextConfig(ssl_type="ssl", cert_config=CertConfig(**values))


def _content_config(certs):
    p = certs["pems"]
    return ContextConfig(
        is_cert_path=False,
        ssl_type="ssl",
        cert_config=CertConfig(
            ca_cert=p["ca.crt"].decode(),
            node_cert=p["node.crt"].decode(),
            node_key=p["node.key"].decode(),
        ),
    )


def _sm_path_config(certs, **overrides):
    d = certs["dir"]
    values = {
        "ca_cert": str(d / "sm_ca.crt"),
        "node_cert": str(d / "sm_node.crt"),
        "node_key": str(d / "sm_node.key"),
        "en_node_cert": str(d / "sm_ennode.crt"),
        "en_node_key": str(d / "sm_ennode.key"),
    }
    values.update(overrides)
    return ContextConfig(ssl_type="sm_ssl", sm_cert_config=SMCertConfig(**values))


def _sm_content_config(certs, en_key_name="sm_ennode.key"):
    p = certs["pems"]
    return ContextConfig(
        is_cert_path=False,
        ssl_type="sm_ssl",
        sm_cert_config=SMCertConfig(
            ca_cert=p["sm_ca.crt"],
            node_cert=p["sm_node.crt"],
            node_key=p["sm_node.key"],
            en_node_cert=p["sm_ennode.crt"],
            en_node_key=p[en_key_name],
        ),
    )


def _handshake(server_ctx, client_ctx):
    s_in, s_out = ssl.MemoryBIO(), ssl.MemoryBIO()
    c_in, c_out = ssl.MemoryBIO(), ssl.MemoryBIO()
    server = server_ctx.wrap_bio(s_in, s_out, server_side=True)
    client = client_ctx.wrap_bio(c_in, c_out, server_side=False)
    done = [False, False]
    for _ in range(50):
        for index, obj in enumerate((client, server)):
            if not done[index]:
                try:
                    obj.do_handshake()
                    done[index] = True
                except ssl.SSLWantReadError:
                    pass
        s_in.write(c_out.read())
        c_in.write(s_out.read())
        if all(done):
            return client, server
    raise AssertionError("handshake did not complete")


def test_read_file_content_round_trip(tmp_path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"\x00\x01abc")
    assert ContextBuilder.read_file_content(path) == b"\x00\x01abc"


def test_read_file_content_missing_is_empty(tmp_path):
    assert ContextBuilder.read_file_content(tmp_path / "missing") == b""


def test_read_file_content_empty_file(tmp_path):
    path = tmp_path / "empty"
    path.write_bytes(b"")
    assert ContextBuilder.read_file_content(path) == b""


def test_server_context_from_paths(certs):
    ctx = ContextBuilder().build_ssl_context(True, _path_config(certs))
    assert ctx.verify_mode == ssl.CERT_REQUIRED
    assert ctx.minimum_version == ssl.TLSVersion.TLSv1_2
    assert ctx.maximum_version == ssl.TLSVersion.TLSv1_2


def test_client_context_does_not_check_hostname(certs):
    ctx = ContextBuilder().build_ssl_context(False, _path_config(certs))
    assert ctx.check_hostname is False
    assert ctx.verify_mode == ssl.CERT_REQUIRED


@pytest.mark.parametrize("make_config", [_path_config, _content_config])
def test_handshake_between_built_contexts(certs, make_config):
    builder = ContextBuilder()
    config = make_config(certs)
    client, server = _handshake(
        builder.build_ssl_context(True, config), builder.build_ssl_context(False, config)
    )
    assert client.getpeercert(binary_form=True) == certs["node_der"]
    assert server.getpeercert(binary_form=True) == certs["node_der"]


def test_build_from_ini_file(certs, tmp_path):
    ini = tmp_path / "boostssl.ini"
    ini.write_text(f"[common]\nssl_type=ssl\n[cert]\nca_path={certs['dir']}\n")
    ctx = ContextBuilder().build_ssl_context(True, ini)
    assert ctx.verify_mode == ssl.CERT_REQUIRED


def test_mismatched_key_fails(certs):
    config = _path_config(certs, node_key=str(certs["dir"] / "other.key"))
    with pytest.raises(ContextBuildError):
        ContextBuilder().build_ssl_context(True, config)


def test_missing_ca_fails(certs):
    config = _path_config(certs, ca_cert=str(certs["dir"] / "absent.crt"))
    with pytest.raises(ContextBuildError):
        ContextBuilder().build_ssl_context(True, config)


def test_missing_key_fails(certs):
    config = _path_config(certs, node_key=str(certs["dir"] / "absent.key"))
    with pytest.raises(ContextBuildError):
        ContextBuilder().build_ssl_context(False, config)


def test_sm_context_from_paths(certs):
    ctx = ContextBuilder().build_ssl_context(True, _sm_path_config(certs))
    assert ctx.verify_mode == ssl.CERT_REQUIRED


def test_sm_enc_key_mismatch_fails(certs):
    config = _sm_path_config(certs, en_node_key=str(certs["dir"] / "other.key"))
    with pytest.raises(ContextBuildError, match="enc_private_key"):
        ContextBuilder().build_ssl_context(True, config)


def test_sm_context_from_content(certs):
    ctx = ContextBuilder().build_ssl_context(False, _sm_content_config(certs))
    assert ctx.verify_mode == ssl.CERT_REQUIRED
    assert ctx.check_hostname is False


def test_sm_content_enc_key_mismatch_fails(certs):
    with pytest.raises(ContextBuildError, match="enc_private_key"):
        ContextBuilder().build_ssl_context(True, _sm_content_config(certs, "other.key"))


def test_sm_content_bad_enc_cert_fails(certs):
    config = _sm_content_config(certs)
    config.sm_cert_config.en_node_cert = "not a certificate"
    with pytest.raises(ContextBuildError, match="enc_certificate"):
        ContextBuilder().build_ssl_context(True, config)