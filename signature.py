# signature.py
"""
XML Signature blocks built on the event-stream document model.

A SignatureContext signs exactly one payload:

    context = profile.new_context()
    context.load("#1234", payload)
    context.sign()
    events = context.signature_events()

The digest covers the payload; the signature covers the serialized
SignedInfo, which lists the algorithms, the reference URI and the digest.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
import base64
import binascii
import logging

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.backends import default_backend
from lxml import etree

from algorithms import (
    CanonicalizationAlgorithm,
    DigestAlgorithm,
    SignatureAlgorithm,
    DIGEST_ALGORITHMS,
    RSA_SHA1_SIGNATURE_URI,
)
from errors import SignaturePreconditionError
from xml_events import Event, Close, Open, empty_element, parse, serialize, text_element

logger = logging.getLogger(__name__)

DSIG_NS = "http://www.w3.org/2000/09/xmldsig#"


class SignatureState(str, Enum):
    CREATED = "created"
    LOADED = "loaded"
    SIGNED = "signed"


class SignatureContext:
    def __init__(
        self,
        canonicalization: CanonicalizationAlgorithm,
        signature: SignatureAlgorithm,
        digest: DigestAlgorithm,
        certificate: str,
    ):
        self.canonicalization = canonicalization
        self.signature = signature
        self.digest = digest
        self.certificate = certificate
        self.uri: Optional[str] = None
        self.payload: Optional[str] = None
        self.digest_value: Optional[str] = None
        self.signature_value: Optional[str] = None
        self.state = SignatureState.CREATED

    def _require(self, state: SignatureState, action: str) -> None:
        if self.state is not state:
            raise SignaturePreconditionError(
                f"cannot {action}: signature context is {self.state.value}, "
                f"expected {state.value}"
            )

    def load(self, uri: str, payload: str) -> None:
        """Set the Reference URI and the exact serialized text to sign"""
        self._require(SignatureState.CREATED, "load")
        self.uri = uri
        self.payload = payload
        self.state = SignatureState.LOADED

    def sign(self) -> None:
        """
        Digest the canonicalized payload, then sign the standalone
        serialization of SignedInfo.
        """
        self._require(SignatureState.LOADED, "sign")

        canonical = self.canonicalization.run(self.payload)
        self.digest_value = self.digest.run(canonical)

        # SignedInfo is signed in its standalone form, declaring the dsig namespace
        signed_info = serialize(self._signed_info_events(xmlns=True))
        self.signature_value = self.signature.run(signed_info)
        self.state = SignatureState.SIGNED

        logger.info(f"Signed {self.uri} (digest {self.digest_value})")

    def _signed_info_events(self, xmlns: bool) -> List[Event]:
        attributes = (("xmlns", DSIG_NS),) if xmlns else ()
        c14n = self.canonicalization.identifier()

        events: List[Event] = [Open("SignedInfo", attributes)]
        events += empty_element("CanonicalizationMethod", ("Algorithm", c14n))
        events += empty_element("SignatureMethod", ("Algorithm", self.signature.identifier()))
        events.append(Open("Reference", (("URI", self.uri),)))
        events.append(Open("Transforms"))
        events += empty_element("Transform", ("Algorithm", c14n))
        events.append(Close("Transforms"))
        events += empty_element("DigestMethod", ("Algorithm", self.digest.identifier()))
        events += text_element("DigestValue", self.digest_value)
        events.append(Close("Reference"))
        events.append(Close("SignedInfo"))
        return events

    def signed_info_xml(self) -> str:
        """The SignedInfo string the signature value was computed over"""
        self._require(SignatureState.SIGNED, "emit SignedInfo")
        return serialize(self._signed_info_events(xmlns=True))

    def signature_events(self) -> List[Event]:
        """The complete Signature block, ready to append to a fragment"""
        self._require(SignatureState.SIGNED, "emit the signature")

        events: List[Event] = [Open("Signature", (("xmlns", DSIG_NS),))]
        events += self._signed_info_events(xmlns=False)
        events += text_element("SignatureValue", self.signature_value)
        events.append(Open("KeyInfo"))
        events.append(Open("X509Data"))
        events += text_element("X509Certificate", self.certificate)
        events.append(Close("X509Data"))
        events.append(Close("KeyInfo"))
        events.append(Close("Signature"))
        return events


@dataclass(frozen=True)
class SigningProfile:
    """Algorithms and certificate shared by every signature of a run"""
    canonicalization: CanonicalizationAlgorithm
    signature: SignatureAlgorithm
    digest: DigestAlgorithm
    certificate: str

    def new_context(self) -> SignatureContext:
        return SignatureContext(
            self.canonicalization,
            self.signature,
            self.digest,
            self.certificate,
        )


def _signed_info_slice(events: List[Event]) -> List[Event]:
    start = next(i for i, e in enumerate(events) if isinstance(e, Open) and e.name == "SignedInfo")
    end = next(i for i, e in enumerate(events) if isinstance(e, Close) and e.name == "SignedInfo")
    signed_info = list(events[start:end + 1])
    # Back to the standalone form that was signed
    attributes = tuple(a for a in signed_info[0].attributes if a[0] != "xmlns")
    signed_info[0] = Open("SignedInfo", (("xmlns", DSIG_NS),) + attributes)
    return signed_info


def verify_signature(payload: str, signature_xml: str, certificate: str = None) -> bool:
    """
    Verify a Signature block against the payload it references

    Args:
        payload: The exact serialized fragment the signature covers
        signature_xml: The serialized Signature element
        certificate: Base64 DER certificate; defaults to the embedded X509Certificate

    Returns:
        bool: True if both the digest and the RSA-SHA1 signature check out
    """
    try:
        root = etree.fromstring(signature_xml.encode('utf-8'))
        ns = {"ds": DSIG_NS}

        digest_method = root.find("ds:SignedInfo/ds:Reference/ds:DigestMethod", ns)
        digest_value = root.findtext("ds:SignedInfo/ds:Reference/ds:DigestValue", namespaces=ns)
        signature_method = root.find("ds:SignedInfo/ds:SignatureMethod", ns)
        signature_value = root.findtext("ds:SignatureValue", namespaces=ns)
        if digest_method is None or signature_method is None or signature_value is None:
            logger.error("Incomplete signature structure")
            return False

        digest = DIGEST_ALGORITHMS.get(digest_method.get("Algorithm"))
        if digest is None:
            logger.error(f"Unsupported digest method {digest_method.get('Algorithm')}")
            return False
        if signature_method.get("Algorithm") != RSA_SHA1_SIGNATURE_URI:
            logger.error(f"Unsupported signature method {signature_method.get('Algorithm')}")
            return False

        if digest.run(payload) != digest_value:
            logger.error("Digest value does not match the payload")
            return False

        if certificate is None:
            certificate = root.findtext("ds:KeyInfo/ds:X509Data/ds:X509Certificate", namespaces=ns)
        cert = x509.load_der_x509_certificate(base64.b64decode(certificate), default_backend())

        signed_info = serialize(_signed_info_slice(parse(signature_xml)))
        cert.public_key().verify(
            base64.b64decode(signature_value),
            signed_info.encode('utf-8'),
            asym_padding.PKCS1v15(),
            hashes.SHA1()
        )

        logger.info("XML signature verified successfully")
        return True

    except InvalidSignature:
        logger.error("Signature value does not match SignedInfo")
        return False
    except (etree.XMLSyntaxError, binascii.Error, TypeError, ValueError, UnsupportedAlgorithm) as e:
        logger.error(f"Signature verification failed: {str(e)}")
        return False
