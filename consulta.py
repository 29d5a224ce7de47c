# consulta.py
"""
ConsultarLoteRps: query a submitted batch by its protocol number and match
the returned invoices (CompNfse) back to the RPS records that produced them.
"""
from decimal import Decimal, InvalidOperation
from typing import List, NamedTuple, Optional
import logging

from lxml import etree

from config import BatchConfig
from errors import MalformedDocumentError
from record import ABRASF_NS, CENT, LAYOUT_VERSION, Record
from xml_events import Event, Close, Open, serialize, text_element

logger = logging.getLogger(__name__)


class ConsultaLote:
    """ConsultarLoteRpsEnvio: asks for the invoices issued under a protocol number"""

    def __init__(self, cnpj: str, inscricao_municipal: str, protocolo: str = ""):
        self.cnpj = cnpj
        self.inscricao_municipal = inscricao_municipal
        self.protocolo = protocolo

    @classmethod
    def from_config(cls, config: BatchConfig, protocolo: str) -> "ConsultaLote":
        return cls(config.cnpj, config.inscricao_municipal, protocolo)

    def events(self) -> List[Event]:
        events: List[Event] = [Open("ConsultarLoteRpsEnvio", (
            ("xmlns", ABRASF_NS),
            ("versao", LAYOUT_VERSION),
        ))]
        events.append(Open("Prestador"))
        events += text_element("Cnpj", self.cnpj)
        events += text_element("InscricaoMunicipal", self.inscricao_municipal)
        events.append(Close("Prestador"))
        events += text_element("Protocolo", self.protocolo)
        events.append(Close("ConsultarLoteRpsEnvio"))
        return events

    def xml(self) -> str:
        return serialize(self.events())


class Invoice(NamedTuple):
    numero: str
    identity: str
    xml: bytes
    record: Optional[Record] = None


def _amount(value: str) -> str:
    try:
        return str(Decimal(value).quantize(CENT))
    except InvalidOperation:
        return value


def _invoice_identity(inf_nfse: etree._Element) -> str:
    """Same key as Record.uniquely_identify, read from a returned InfNfse"""
    razao_social = inf_nfse.findtext("{*}TomadorServico/{*}RazaoSocial", default="")
    discriminacao = inf_nfse.findtext("{*}Servico/{*}Discriminacao", default="")
    valor = inf_nfse.findtext("{*}Servico/{*}Valores/{*}ValorServicos", default="")
    return f"{razao_social}|{discriminacao}|{_amount(valor.strip())}"


def match_invoices(resposta_xml: str, records: List[Record]) -> List[Invoice]:
    """
    Split a ConsultarLoteRpsResposta into its CompNfse documents, each paired
    with the record it was issued for (None when no record matches).
    """
    try:
        root = etree.fromstring(resposta_xml.encode('utf-8'))
    except etree.XMLSyntaxError as e:
        raise MalformedDocumentError(f"unreadable ConsultarLoteRpsResposta: {str(e)}") from e

    by_identity = {record.uniquely_identify(): record for record in records}

    invoices = []
    for comp_nfse in root.iterfind(".//{*}CompNfse"):
        inf_nfse = comp_nfse.find(".//{*}InfNfse")
        if inf_nfse is None:
            raise MalformedDocumentError("CompNfse without InfNfse")

        identity = _invoice_identity(inf_nfse)
        record = by_identity.get(identity)
        if record is None:
            logger.warning(f"No record matches invoice {identity}")

        invoices.append(Invoice(
            numero=inf_nfse.findtext("{*}Numero", default=""),
            identity=identity,
            xml=etree.tostring(comp_nfse, xml_declaration=True, encoding="UTF-8"),
            record=record,
        ))
    return invoices
