import base64

import pytest
from cryptography import x509

from algorithms import ExclusiveXmlCanonicalization, RsaSha1Signature, Sha1Digest
from config import parse_batch_config
from conftest import BATCH_YAML
from credentials import (
    load_certificate_text,
    load_private_key,
    load_signing_profile,
    trim_certificate,
)
from errors import ConfigurationError


def test_trim_certificate():
    pem = "-----BEGIN CERTIFICATE-----\nAAAA\nBBBB\n-----END CERTIFICATE-----\n"
    assert trim_certificate(pem) == "AAAABBBB"


def test_certificate_text_is_der_base64(certificate):
    assert "-----" not in certificate
    assert "\n" not in certificate
    x509.load_der_x509_certificate(base64.b64decode(certificate))


def test_profile_from_config(key_files):
    yaml_text = (
        f"certificado_key: {key_files['certificado_key']}\n"
        f"certificado_cer: {key_files['certificado_cer']}\n"
        + BATCH_YAML
    )
    profile = load_signing_profile(parse_batch_config(yaml_text))

    assert isinstance(profile.canonicalization, ExclusiveXmlCanonicalization)
    assert isinstance(profile.digest, Sha1Digest)
    assert isinstance(profile.signature, RsaSha1Signature)
    assert profile.certificate == load_certificate_text(key_files["certificado_cer"])


def test_profile_requires_key_path():
    with pytest.raises(ConfigurationError, match="certificado_key"):
        load_signing_profile(parse_batch_config(BATCH_YAML))


def test_missing_key_file(tmp_path):
    with pytest.raises(ConfigurationError, match="could not read file at certificado_key"):
        load_private_key(str(tmp_path / "missing.pem"))


def test_invalid_key_file(key_files):
    with pytest.raises(ConfigurationError, match="not valid private key"):
        load_private_key(key_files["certificado_cer"])


def test_empty_certificate_file(tmp_path):
    path = tmp_path / "empty.cer"
    path.write_text("-----BEGIN CERTIFICATE-----\n-----END CERTIFICATE-----\n")
    with pytest.raises(ConfigurationError, match="holds no certificate"):
        load_certificate_text(str(path))
