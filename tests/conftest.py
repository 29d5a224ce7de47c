import pytest

from algorithms import EchoDigest, EchoSignature, NoOpCanonicalization
from credentials import load_certificate_text, load_private_key, signing_profile
from key_generator import generate_keys
from signature import SigningProfile

BATCH_YAML = """
cnpj: cnpj_prestador
inscricao_municipal: inscricao_municipal_prestador
codigo_municipio: codigo_municipio_prestador
notas_fiscais:
  - id: 1234
    competencia: data_emissao
    natureza_operacao: natureza_operacao
    regime_especial_tributacao: regime_especial_tributacao
    optante_simples_nacional: optante_simples_nacional
    incentivador_cultural: incentivador_cultural
    item_lista_servico: item_lista_servico
    codigo_tributacao_municipio: codigo_tributacao_municipio
    discriminacao: discriminacao
    valor_servicos: 1000.00
    aliquota_iss: 0.02
    cnpj: cnpj_tomador
    inscricao_municipal: inscricao_municipal_tomador
    razao_social: razao_social_tomador
    logradouro: logradouro_tomador
    numero: numero_tomador
    complemento: complemento_tomador
    bairro: bairro_tomador
    codigo_municipio: codigo_municipio_tomador
    uf: uf_tomador
    cep: cep_tomador
  - id: 5678
    competencia: data_emissao_2
    natureza_operacao: natureza_operacao_2
    regime_especial_tributacao: regime_especial_tributacao_2
    optante_simples_nacional: optante_simples_nacional_2
    incentivador_cultural: incentivador_cultural_2
    item_lista_servico: item_lista_servico_2
    codigo_tributacao_municipio: codigo_tributacao_municipio_2
    discriminacao: discriminacao_2
    valor_servicos: 800.00
    aliquota_iss: 0.03
    cnpj: cnpj_tomador_2
    inscricao_municipal: inscricao_municipal_tomador_2
    razao_social: razao_social_tomador_2
    logradouro: logradouro_tomador_2
    numero: numero_tomador_2
    complemento: complemento_tomador_2
    bairro: bairro_tomador_2
    codigo_municipio: codigo_municipio_tomador_2
    uf: uf_tomador_2
    cep: cep_tomador_2
"""


def echo_signature_xml(uri):
    """Signature block produced by the echo profile for a reference URI"""
    return (
        '<Signature xmlns="http://www.w3.org/2000/09/xmldsig#"><SignedInfo>'
        '<CanonicalizationMethod Algorithm="noop-c14n"/>'
        '<SignatureMethod Algorithm="echo-signature"/>'
        f'<Reference URI="{uri}"><Transforms><Transform Algorithm="noop-c14n"/></Transforms>'
        '<DigestMethod Algorithm="echo-digest"/><DigestValue>the_digest</DigestValue>'
        '</Reference></SignedInfo><SignatureValue>the_signature</SignatureValue>'
        '<KeyInfo><X509Data><X509Certificate>the_certificate</X509Certificate>'
        '</X509Data></KeyInfo></Signature>'
    )


@pytest.fixture
def echo_profile():
    return SigningProfile(
        canonicalization=NoOpCanonicalization(),
        signature=EchoSignature("the_signature"),
        digest=EchoDigest("the_digest"),
        certificate="the_certificate",
    )


@pytest.fixture(scope="session")
def key_files(tmp_path_factory):
    return generate_keys(str(tmp_path_factory.mktemp("keys")))


@pytest.fixture(scope="session")
def private_key(key_files):
    return load_private_key(key_files["certificado_key"])


@pytest.fixture(scope="session")
def certificate(key_files):
    return load_certificate_text(key_files["certificado_cer"])


@pytest.fixture(scope="session")
def rsa_profile(private_key, certificate):
    return signing_profile(private_key, certificate)
