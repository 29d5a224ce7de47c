import dataclasses

import pytest
from lxml import etree

from algorithms import EchoSignature, NoOpCanonicalization, Sha1Digest
from conftest import echo_signature_xml
from errors import SignaturePreconditionError
from signature import DSIG_NS, SignatureContext, SignatureState, verify_signature
from xml_events import serialize

PAYLOAD = "<Payload>To Sign</Payload>"


def test_should_sign_payload(echo_profile):
    signature = echo_profile.new_context()
    signature.load("#URI", PAYLOAD)
    signature.sign()

    assert serialize(signature.signature_events()) == (
        '<Signature xmlns="http://www.w3.org/2000/09/xmldsig#"><SignedInfo>'
        '<CanonicalizationMethod Algorithm="noop-c14n"/><SignatureMethod Algorithm="echo-signature"/>'
        '<Reference URI="#URI"><Transforms><Transform Algorithm="noop-c14n"/></Transforms>'
        '<DigestMethod Algorithm="echo-digest"/><DigestValue>the_digest</DigestValue></Reference>'
        '</SignedInfo><SignatureValue>the_signature</SignatureValue><KeyInfo><X509Data>'
        '<X509Certificate>the_certificate</X509Certificate></X509Data></KeyInfo></Signature>'
    )
    assert serialize(signature.signature_events()) == echo_signature_xml("#URI")


def test_lifecycle_states(echo_profile):
    signature = echo_profile.new_context()
    assert signature.state is SignatureState.CREATED
    signature.load("#URI", PAYLOAD)
    assert signature.state is SignatureState.LOADED
    signature.sign()
    assert signature.state is SignatureState.SIGNED
    assert signature.digest_value == "the_digest"
    assert signature.signature_value == "the_signature"


def test_sign_before_load_is_rejected(echo_profile):
    with pytest.raises(SignaturePreconditionError):
        echo_profile.new_context().sign()


def test_signature_events_before_sign_is_rejected(echo_profile):
    signature = echo_profile.new_context()
    with pytest.raises(SignaturePreconditionError):
        signature.signature_events()
    signature.load("#URI", PAYLOAD)
    with pytest.raises(SignaturePreconditionError):
        signature.signature_events()
    with pytest.raises(SignaturePreconditionError):
        signature.signed_info_xml()


def test_context_is_single_use(echo_profile):
    signature = echo_profile.new_context()
    signature.load("#URI", PAYLOAD)
    signature.sign()
    with pytest.raises(SignaturePreconditionError):
        signature.load("#OTHER", PAYLOAD)
    with pytest.raises(SignaturePreconditionError):
        signature.sign()


def test_profile_mints_independent_contexts(echo_profile):
    first = echo_profile.new_context()
    second = echo_profile.new_context()
    first.load("#A", PAYLOAD)
    assert second.state is SignatureState.CREATED
    assert second.uri is None


def test_signed_info_holds_digest_and_algorithms():
    signature = SignatureContext(
        NoOpCanonicalization(), EchoSignature("sig"), Sha1Digest(), "cert"
    )
    signature.load("#URI", PAYLOAD)
    signature.sign()

    signed_info = etree.fromstring(signature.signed_info_xml().encode("utf-8"))
    ns = {"ds": DSIG_NS}
    digest_values = signed_info.findall(".//ds:DigestValue", ns)
    assert [d.text for d in digest_values] == [Sha1Digest().run(PAYLOAD)]
    assert signed_info.find("ds:CanonicalizationMethod", ns).get("Algorithm") == "noop-c14n"
    assert signed_info.find("ds:SignatureMethod", ns).get("Algorithm") == "echo-signature"
    assert signed_info.find("ds:Reference", ns).get("URI") == "#URI"
    assert signed_info.find("ds:Reference/ds:DigestMethod", ns).get("Algorithm") == Sha1Digest().identifier()


def test_signature_is_computed_over_standalone_signed_info():
    seen = []

    class Recorder:
        def identifier(self):
            return "recorder"

        def run(self, payload):
            seen.append(payload)
            return "recorded"

    signature = SignatureContext(NoOpCanonicalization(), Recorder(), Sha1Digest(), "cert")
    signature.load("#URI", PAYLOAD)
    signature.sign()

    assert seen == [signature.signed_info_xml()]
    assert seen[0].startswith('<SignedInfo xmlns="http://www.w3.org/2000/09/xmldsig#">')
    # Nested inside Signature the namespace is not declared twice
    assert "<SignedInfo>" in serialize(signature.signature_events())


def test_digest_is_deterministic(rsa_profile):
    digests = set()
    for _ in range(3):
        signature = rsa_profile.new_context()
        signature.load("#URI", PAYLOAD)
        signature.sign()
        digests.add(signature.digest_value)
    assert len(digests) == 1


def test_verify_rsa_signature(rsa_profile):
    signature = rsa_profile.new_context()
    signature.load("#URI", PAYLOAD)
    signature.sign()
    signature_xml = serialize(signature.signature_events())

    assert verify_signature(PAYLOAD, signature_xml)
    assert not verify_signature("<Payload>To Sign!</Payload>", signature_xml)


def test_verify_rejects_tampered_signed_info(rsa_profile):
    signature = rsa_profile.new_context()
    signature.load("#URI", PAYLOAD)
    signature.sign()
    signature_xml = serialize(signature.signature_events()).replace('URI="#URI"', 'URI="#OTHER"')

    assert not verify_signature(PAYLOAD, signature_xml)


def test_verify_rejects_echo_signature(echo_profile):
    signature = echo_profile.new_context()
    signature.load("#URI", PAYLOAD)
    signature.sign()

    assert not verify_signature(PAYLOAD, serialize(signature.signature_events()))


def test_profile_is_immutable(echo_profile):
    with pytest.raises(dataclasses.FrozenInstanceError):
        echo_profile.certificate = "other"
