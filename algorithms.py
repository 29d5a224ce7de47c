# algorithms.py
"""
Canonicalization, digest and signature algorithms used by XML signatures.

Each family is a closed set of small immutable variants. Every variant
exposes identifier(), the string written to the Algorithm attribute, and
run(), a pure str -> str transform. The identifiers are part of the wire
contract with the verifying web service and must never change.
"""
from dataclasses import dataclass, field
from typing import Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.backends import default_backend
import base64

EXC_C14N_URI = "http://www.w3.org/2001/10/xml-exc-c14n#"
SHA1_DIGEST_URI = "http://www.w3.org/2000/09/xmldsig#sha1"
RSA_SHA1_SIGNATURE_URI = "http://www.w3.org/2000/09/xmldsig#rsa-sha1"


# Canonicalization

@dataclass(frozen=True)
class ExclusiveXmlCanonicalization:
    # Declared as exclusive c14n, but the payload is passed through untouched.
    # The serializer already produces the canonical form the service accepts.
    def identifier(self) -> str:
        return EXC_C14N_URI

    def run(self, payload: str) -> str:
        return payload


@dataclass(frozen=True)
class NoOpCanonicalization:
    def identifier(self) -> str:
        return "noop-c14n"

    def run(self, payload: str) -> str:
        return payload


# Digest

@dataclass(frozen=True)
class Sha1Digest:
    def identifier(self) -> str:
        return SHA1_DIGEST_URI

    def run(self, payload: str) -> str:
        """Base64 of the SHA-1 of the UTF-8 payload"""
        digest = hashes.Hash(hashes.SHA1(), backend=default_backend())
        digest.update(payload.encode('utf-8'))
        return base64.b64encode(digest.finalize()).decode('utf-8')


@dataclass(frozen=True)
class EchoDigest:
    value: str

    def identifier(self) -> str:
        return "echo-digest"

    def run(self, payload: str) -> str:
        return self.value


# Signature

@dataclass(frozen=True)
class RsaSha1Signature:
    private_key: RSAPrivateKey = field(repr=False)

    def identifier(self) -> str:
        return RSA_SHA1_SIGNATURE_URI

    def run(self, payload: str) -> str:
        """Base64 of the RSA PKCS#1 v1.5 signature (SHA-1) of the UTF-8 payload"""
        signature_bytes = self.private_key.sign(
            payload.encode('utf-8'),
            asym_padding.PKCS1v15(),
            hashes.SHA1()
        )
        return base64.b64encode(signature_bytes).decode('utf-8')


@dataclass(frozen=True)
class EchoSignature:
    value: str

    def identifier(self) -> str:
        return "echo-signature"

    def run(self, payload: str) -> str:
        return self.value


CanonicalizationAlgorithm = Union[ExclusiveXmlCanonicalization, NoOpCanonicalization]
DigestAlgorithm = Union[Sha1Digest, EchoDigest]
SignatureAlgorithm = Union[RsaSha1Signature, EchoSignature]

DIGEST_ALGORITHMS = {
    SHA1_DIGEST_URI: Sha1Digest(),
}
