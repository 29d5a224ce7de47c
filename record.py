# record.py
"""
RPS (Recibo Provisório de Serviços): one invoice record of a batch.

A record renders its own InfRps fragment, signs it with a fresh
SignatureContext and from then on emits the Signature block as the last
child of its Rps element.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional
import logging

from config import RecordConfig, generate_record_id
from errors import ConfigurationError
from signature import SignatureContext
from xml_events import Event, Close, Open, serialize, text_element

logger = logging.getLogger(__name__)

ABRASF_NS = "http://www.abrasf.org.br/nfse.xsd"
LAYOUT_VERSION = "1.00"

CENT = Decimal("0.01")


@dataclass(frozen=True)
class Amounts:
    valor_servicos: str
    valor_iss: Optional[str]
    valor_liquido: str


def _decimal(value: str, field_name: str) -> Decimal:
    try:
        number = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ConfigurationError(f"{field_name}: {value!r} is not a decimal number")
    if not number.is_finite():
        raise ConfigurationError(f"{field_name}: {value!r} is not a decimal number")
    return number


def _cents(number: Decimal, field_name: str) -> Decimal:
    try:
        return number.quantize(CENT, ROUND_HALF_UP)
    except InvalidOperation:
        # more digits than the decimal context holds
        raise ConfigurationError(f"{field_name}: {number} is out of range")


def compute_amounts(valor_servicos: str, aliquota_iss: Optional[str] = None) -> Amounts:
    """
    Gross, withheld ISS and net amounts, each with two decimal places.
    The ISS is rounded half-up to the cent before it is subtracted.
    """
    gross = _decimal(valor_servicos, "valor_servicos")
    valor = _cents(gross, "valor_servicos")
    if aliquota_iss is None:
        return Amounts(valor_servicos=str(valor), valor_iss=None, valor_liquido=str(valor))

    rate = _decimal(aliquota_iss, "aliquota_iss")
    iss = _cents(gross * rate, "aliquota_iss")
    return Amounts(
        valor_servicos=str(valor),
        valor_iss=str(iss),
        valor_liquido=str(_cents(gross - iss, "valor_servicos")),
    )


class Record:
    def __init__(
        self,
        id: str,
        competencia: str,
        natureza_operacao: str,
        regime_especial_tributacao: str,
        optante_simples_nacional: str,
        incentivador_cultural: str,
        item_lista_servico: str,
        codigo_tributacao_municipio: str,
        discriminacao: str,
        codigo_municipio: str,
        valor_servicos: str,
        cnpj_prestador: str,
        inscricao_municipal_prestador: str,
        razao_social_tomador: str,
        logradouro_tomador: str,
        numero_tomador: str,
        bairro_tomador: str,
        codigo_municipio_tomador: str,
        uf_tomador: str,
        aliquota_iss: Optional[str] = None,
        cnpj_tomador: Optional[str] = None,
        inscricao_municipal_tomador: Optional[str] = None,
        complemento_tomador: Optional[str] = None,
        cep_tomador: Optional[str] = None,
        nome_arquivo: Optional[str] = None,
    ):
        self.id = id
        self.nome_arquivo = nome_arquivo
        self.data_emissao = competencia
        self.natureza_operacao = natureza_operacao
        self.regime_especial_tributacao = regime_especial_tributacao
        self.optante_simples_nacional = optante_simples_nacional
        self.incentivador_cultural = incentivador_cultural
        self.item_lista_servico = item_lista_servico
        self.codigo_tributacao_municipio = codigo_tributacao_municipio
        self.discriminacao = discriminacao
        self.codigo_municipio = codigo_municipio
        self.aliquota_iss = aliquota_iss
        self.amounts = compute_amounts(valor_servicos, aliquota_iss)
        self.cnpj_prestador = cnpj_prestador
        self.inscricao_municipal_prestador = inscricao_municipal_prestador
        self.cnpj_tomador = cnpj_tomador
        self.inscricao_municipal_tomador = inscricao_municipal_tomador
        self.razao_social_tomador = razao_social_tomador
        self.logradouro_tomador = logradouro_tomador
        self.numero_tomador = numero_tomador
        self.complemento_tomador = complemento_tomador
        self.bairro_tomador = bairro_tomador
        self.codigo_municipio_tomador = codigo_municipio_tomador
        self.uf_tomador = uf_tomador
        self.cep_tomador = cep_tomador
        self.signature: Optional[SignatureContext] = None

    @classmethod
    def from_config(
        cls,
        config: RecordConfig,
        cnpj: str,
        inscricao_municipal: str,
        codigo_municipio: str,
    ) -> "Record":
        """Build a record; the provider identity comes from the batch level"""
        record_id = config.id
        if record_id is None:
            record_id = generate_record_id()
            logger.info(f"No id given for record of {config.razao_social}, using {record_id}")

        return cls(
            id=record_id,
            nome_arquivo=config.nome_arquivo,
            competencia=config.competencia,
            natureza_operacao=config.natureza_operacao,
            regime_especial_tributacao=config.regime_especial_tributacao,
            optante_simples_nacional=config.optante_simples_nacional,
            incentivador_cultural=config.incentivador_cultural,
            item_lista_servico=config.item_lista_servico,
            codigo_tributacao_municipio=config.codigo_tributacao_municipio,
            discriminacao=config.discriminacao,
            codigo_municipio=codigo_municipio,
            valor_servicos=config.valor_servicos,
            aliquota_iss=config.aliquota_iss,
            cnpj_prestador=cnpj,
            inscricao_municipal_prestador=inscricao_municipal,
            cnpj_tomador=config.cnpj,
            inscricao_municipal_tomador=config.inscricao_municipal,
            razao_social_tomador=config.razao_social,
            logradouro_tomador=config.logradouro,
            numero_tomador=config.numero,
            complemento_tomador=config.complemento,
            bairro_tomador=config.bairro,
            codigo_municipio_tomador=config.codigo_municipio,
            uf_tomador=config.uf,
            cep_tomador=config.cep,
        )

    @property
    def signed(self) -> bool:
        return self.signature is not None

    def sign(self, signature: SignatureContext) -> None:
        """Sign the standalone InfRps fragment and keep the signature"""
        signature.load(f"#{self.id}", self.inf_rps_xml())
        signature.sign()
        self.signature = signature

    def inf_rps_xml(self) -> str:
        """The exact text a record signature covers"""
        return serialize(self._inf_rps_events(xmlns=True))

    def _inf_rps_events(self, xmlns: bool) -> List[Event]:
        attributes = [("Id", self.id), ("versao", LAYOUT_VERSION)]
        if xmlns:
            attributes.insert(0, ("xmlns", ABRASF_NS))
        amounts = self.amounts

        events: List[Event] = [Open("InfRps", tuple(attributes))]

        events.append(Open("IdentificacaoRps"))
        events += text_element("Numero", self.id)
        events += text_element("Serie", "1")
        events += text_element("Tipo", "1")
        events.append(Close("IdentificacaoRps"))

        events += text_element("DataEmissao", self.data_emissao)
        events += text_element("NaturezaOperacao", self.natureza_operacao)
        events += text_element("RegimeEspecialTributacao", self.regime_especial_tributacao)
        events += text_element("OptanteSimplesNacional", self.optante_simples_nacional)
        events += text_element("IncentivadorCultural", self.incentivador_cultural)
        events += text_element("Status", "1")

        events.append(Open("Servico"))
        events.append(Open("Valores"))
        events += text_element("ValorServicos", amounts.valor_servicos)
        # 1 = withheld by the taker, 2 = not withheld
        events += text_element("IssRetido", "1" if self.aliquota_iss is not None else "2")
        if amounts.valor_iss is not None:
            events += text_element("ValorIss", amounts.valor_iss)
            events += text_element("ValorIssRetido", amounts.valor_iss)
        events += text_element("BaseCalculo", amounts.valor_servicos)
        if self.aliquota_iss is not None:
            events += text_element("Aliquota", self.aliquota_iss)
        events += text_element("ValorLiquidoNfse", amounts.valor_liquido)
        events.append(Close("Valores"))
        events += text_element("ItemListaServico", self.item_lista_servico)
        events += text_element("CodigoTributacaoMunicipio", self.codigo_tributacao_municipio)
        events += text_element("Discriminacao", self.discriminacao)
        events += text_element("CodigoMunicipio", self.codigo_municipio)
        events.append(Close("Servico"))

        events.append(Open("Prestador"))
        events += text_element("Cnpj", self.cnpj_prestador)
        events += text_element("InscricaoMunicipal", self.inscricao_municipal_prestador)
        events.append(Close("Prestador"))

        events.append(Open("Tomador"))
        if self.cnpj_tomador is not None:
            events.append(Open("IdentificacaoTomador"))
            events.append(Open("CpfCnpj"))
            events += text_element("Cnpj", self.cnpj_tomador)
            events.append(Close("CpfCnpj"))
            if self.inscricao_municipal_tomador is not None:
                events += text_element("InscricaoMunicipal", self.inscricao_municipal_tomador)
            events.append(Close("IdentificacaoTomador"))
        events += text_element("RazaoSocial", self.razao_social_tomador)
        events.append(Open("Endereco"))
        events += text_element("Endereco", self.logradouro_tomador)
        events += text_element("Numero", self.numero_tomador)
        if self.complemento_tomador is not None:
            events += text_element("Complemento", self.complemento_tomador)
        events += text_element("Bairro", self.bairro_tomador)
        events += text_element("CodigoMunicipio", self.codigo_municipio_tomador)
        events += text_element("Uf", self.uf_tomador)
        if self.cep_tomador is not None:
            events += text_element("Cep", self.cep_tomador)
        events.append(Close("Endereco"))
        events.append(Close("Tomador"))

        events.append(Close("InfRps"))
        return events

    def rps_events(self, xmlns: bool) -> List[Event]:
        """Rps element: InfRps, then the Signature block once signed"""
        attributes = [("versao", LAYOUT_VERSION)]
        if xmlns:
            attributes.insert(0, ("xmlns", ABRASF_NS))

        events: List[Event] = [Open("Rps", tuple(attributes))]
        events += self._inf_rps_events(xmlns=False)
        if self.signature is not None:
            events += self.signature.signature_events()
        events.append(Close("Rps"))
        return events

    def uniquely_identify(self) -> str:
        """Key used to match records with the invoices the service returns"""
        return f"{self.razao_social_tomador}|{self.discriminacao}|{self.amounts.valor_servicos}"
