# key_generator.py
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography import x509
from cryptography.x509.oid import NameOID
from cryptography.hazmat.primitives import hashes
from pathlib import Path
import datetime
import sys


def generate_keys(directory: str = ".", common_name: str = "ACME SERVICOS LTDA:12345678000199") -> dict:
    """Generate a self-signed RSA key pair for development and tests"""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    # Generate private key
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
        backend=default_backend()
    )

    # Create self-signed certificate
    subject = issuer = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "BR"),
        x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, "MG"),
        x509.NameAttribute(NameOID.LOCALITY_NAME, "Belo Horizonte"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "ICP-Brasil Teste"),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])

    now = datetime.datetime.now(datetime.timezone.utc)
    cert = x509.CertificateBuilder().subject_name(
        subject
    ).issuer_name(
        issuer
    ).public_key(
        private_key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        now
    ).not_valid_after(
        now + datetime.timedelta(days=365)
    ).sign(private_key, hashes.SHA256(), default_backend())

    key_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)

    paths = {
        "certificado_key": directory / "private_key.pem",
        "certificado_cer": directory / "cert.pem",
        # Client certificate for the TLS connection to the web service
        "certificado_pem": directory / "cert_and_key.pem",
    }
    paths["certificado_key"].write_bytes(key_pem)
    paths["certificado_cer"].write_bytes(cert_pem)
    paths["certificado_pem"].write_bytes(cert_pem + key_pem)

    return {name: str(path) for name, path in paths.items()}


if __name__ == "__main__":
    paths = generate_keys(sys.argv[1] if len(sys.argv) > 1 else ".")

    print("Keys generated successfully!")
    print(f"{paths['certificado_key']} - Your private key for signing")
    print(f"{paths['certificado_cer']} - Your certificate")
    print(f"{paths['certificado_pem']} - Certificate and key for the TLS client")
