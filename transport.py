# transport.py
"""
SOAP transport to the BHISS NFS-e web service
"""
from typing import Optional
import logging
import ssl

import httpx
from lxml import etree

from errors import TransportError, TransportTimeoutError

logger = logging.getLogger(__name__)

HOMOLOGATION_URL = "https://bhisshomologaws.pbh.gov.br/bhiss-ws/nfse"
PRODUCTION_URL = "https://bhissdigitalws.pbh.gov.br/bhiss-ws/nfse"

RECEPCIONAR_LOTE_RPS_ACTION = "http://ws.bhiss.pbh.gov.br/RecepcionarLoteRps"
CONSULTAR_LOTE_RPS_ACTION = "http://ws.bhiss.pbh.gov.br/ConsultarLoteRpsEnvio"

SOAP_ENVELOPE_TEMPLATE = (
    '<soapenv:Envelope xmlns:soapenv="http://schemas.xmlsoap.org/soap/envelope/" '
    'xmlns:ws="http://ws.bhiss.pbh.gov.br"><soapenv:Body><ws:{operation}>'
    '<nfseCabecMsg><![CDATA[<?xml version="1.0" encoding="UTF-8"?>'
    '<cabecalho xmlns="http://www.abrasf.org.br/nfse.xsd" versao="1.00">'
    '<versaoDados>1.00</versaoDados></cabecalho>]]></nfseCabecMsg>'
    '<nfseDadosMsg><![CDATA[<?xml version="1.0" encoding="UTF-8"?>{content}]]></nfseDadosMsg>'
    '</ws:{operation}></soapenv:Body></soapenv:Envelope>'
)


def recepcionar_lote_rps_envelope(content: str) -> str:
    return SOAP_ENVELOPE_TEMPLATE.format(operation="RecepcionarLoteRpsRequest", content=content)


def consultar_lote_rps_envelope(content: str) -> str:
    return SOAP_ENVELOPE_TEMPLATE.format(operation="ConsultarLoteRpsRequest", content=content)


def _output_xml(body: str) -> etree._Element:
    """The response document the service escapes inside outputXML"""
    try:
        root = etree.fromstring(body.encode('utf-8'))
        output = root.find(".//{*}outputXML")
        if output is None or not output.text:
            raise TransportError("expected outputXML tag", body=body)
        return etree.fromstring(output.text.encode('utf-8'))
    except etree.XMLSyntaxError as e:
        raise TransportError(f"unreadable response: {str(e)}", body=body) from e


def extract_protocolo(body: str) -> str:
    """Protocol number of an accepted RecepcionarLoteRps response"""
    document = _output_xml(body)
    protocolo = document.findtext(".//{*}Protocolo")
    if protocolo:
        return protocolo

    messages = []
    for message in document.iterfind(".//{*}MensagemRetorno"):
        codigo = message.findtext("{*}Codigo")
        mensagem = message.findtext("{*}Mensagem")
        messages.append(f"{codigo}: {mensagem}")
    detail = "; ".join(messages) if messages else "no Protocolo in response"
    raise TransportError(f"batch rejected: {detail}", body=body)


class NfseClient:
    def __init__(
        self,
        production: bool = False,
        cert_path: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = PRODUCTION_URL if production else HOMOLOGATION_URL
        self.cert_path = cert_path
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        verify = True
        if self.cert_path:
            # PEM holding the client certificate followed by its key
            verify = ssl.create_default_context()
            try:
                verify.load_cert_chain(self.cert_path)
            except OSError as e:
                raise TransportError(f"could not load client certificate {self.cert_path}: {str(e)}") from e
        return httpx.AsyncClient(verify=verify, timeout=self.timeout, transport=self.transport)

    async def _post(self, action: str, envelope: str) -> str:
        try:
            async with self._client() as client:
                response = await client.post(
                    self.url,
                    headers={
                        "Accept": "application/xml",
                        "Content-Type": "text/xml",
                        "SOAPAction": action,
                    },
                    content=envelope.encode('utf-8')
                )
        except httpx.TimeoutException as e:
            logger.error("Request to NFS-e service timed out")
            raise TransportTimeoutError("request to NFS-e service timed out") from e
        except httpx.RequestError as e:
            logger.error(f"Network error: {str(e)}")
            raise TransportError(f"network error: {str(e)}") from e

        logger.info(f"NFS-e response status: {response.status_code}")

        if response.status_code != 200:
            raise TransportError(
                f"error in request (status {response.status_code})",
                status_code=response.status_code,
                body=response.text,
            )
        return response.text

    async def recepcionar_lote_rps(self, envio_xml: str) -> str:
        """Submit a signed EnviarLoteRpsEnvio; returns the protocol number"""
        body = await self._post(RECEPCIONAR_LOTE_RPS_ACTION, recepcionar_lote_rps_envelope(envio_xml))
        return extract_protocolo(body)

    async def consultar_lote_rps(self, consulta_xml: str) -> str:
        """Query a submitted batch; returns the ConsultarLoteRpsResposta document"""
        body = await self._post(CONSULTAR_LOTE_RPS_ACTION, consultar_lote_rps_envelope(consulta_xml))
        return etree.tostring(_output_xml(body), encoding="unicode")
