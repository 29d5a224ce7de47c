# credentials.py
"""
Loading of the signing key and certificate named in the YAML input
"""
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.backends import default_backend
import logging

from algorithms import ExclusiveXmlCanonicalization, RsaSha1Signature, Sha1Digest
from config import BatchConfig
from errors import ConfigurationError
from signature import SigningProfile

logger = logging.getLogger(__name__)


def trim_certificate(pem: str) -> str:
    """Drop the -----BEGIN/END----- lines and join the base64 body into one run"""
    return "".join(
        line.strip() for line in pem.splitlines() if not line.startswith("-----")
    )


def load_private_key(path: str, field_name: str = "certificado_key") -> RSAPrivateKey:
    """Load an unencrypted PEM (PKCS#8) RSA private key"""
    try:
        with open(path, "rb") as f:
            key_data = f.read()
    except OSError as e:
        raise ConfigurationError(f"could not read file at {field_name}: {str(e)}") from e

    try:
        private_key = serialization.load_pem_private_key(
            key_data,
            password=None,
            backend=default_backend()
        )
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"file at {field_name} is not valid private key") from e

    if not isinstance(private_key, RSAPrivateKey):
        raise ConfigurationError(f"file at {field_name} is not an RSA private key")

    logger.info(f"Private key loaded from {path}")
    return private_key


def load_certificate_text(path: str, field_name: str = "certificado_cer") -> str:
    """Certificate body as embedded in X509Certificate"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            pem = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"could not read file at {field_name}: {str(e)}") from e

    certificate = trim_certificate(pem)
    if not certificate:
        raise ConfigurationError(f"file at {field_name} holds no certificate")

    logger.info(f"Certificate loaded from {path}")
    return certificate


def signing_profile(private_key: RSAPrivateKey, certificate: str) -> SigningProfile:
    """The algorithms the municipal web service verifies"""
    return SigningProfile(
        canonicalization=ExclusiveXmlCanonicalization(),
        signature=RsaSha1Signature(private_key),
        digest=Sha1Digest(),
        certificate=certificate,
    )


def load_signing_profile(config: BatchConfig) -> SigningProfile:
    if not config.certificado_key:
        raise ConfigurationError("bad yaml input: certificado_key")
    if not config.certificado_cer:
        raise ConfigurationError("bad yaml input: certificado_cer")
    return signing_profile(
        load_private_key(config.certificado_key),
        load_certificate_text(config.certificado_cer),
    )
