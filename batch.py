# batch.py
"""
LoteRps: the batch of RPS records sent in one EnviarLoteRpsEnvio request.

The batch signature covers the serialized LoteRps element including every
record's own Signature block, so records must be signed first:

    for record in batch.records:
        record.sign(profile.new_context())
    batch.sign(profile.new_context())

sign_batch() runs exactly that sequence.
"""
from typing import List, Optional
import logging

from config import BatchConfig
from errors import ConfigurationError
from record import ABRASF_NS, LAYOUT_VERSION, Record
from signature import SignatureContext, SigningProfile
from xml_events import Event, Close, Open, serialize, text_element

logger = logging.getLogger(__name__)

BATCH_ID = "lote"
BATCH_NUMBER = "1"


class Batch:
    def __init__(self, records: List[Record], cnpj: str, inscricao_municipal: str):
        self.records = records
        self.cnpj = cnpj
        self.inscricao_municipal = inscricao_municipal
        self.signature: Optional[SignatureContext] = None

    @classmethod
    def from_config(cls, config: BatchConfig) -> "Batch":
        records = []
        for i, record_config in enumerate(config.notas_fiscais):
            try:
                records.append(Record.from_config(
                    record_config,
                    config.cnpj,
                    config.inscricao_municipal,
                    config.codigo_municipio,
                ))
            except ConfigurationError as e:
                raise ConfigurationError(f"error in notas_fiscais.{i}: {str(e)}") from e
        return cls(records, config.cnpj, config.inscricao_municipal)

    @property
    def signed(self) -> bool:
        return self.signature is not None

    def sign(self, signature: SignatureContext) -> None:
        """
        Sign the serialized LoteRps. Records that are not signed yet are
        embedded without their Signature block, which the service rejects.
        """
        unsigned = [record.id for record in self.records if not record.signed]
        if unsigned:
            logger.warning(f"Signing batch with unsigned records: {', '.join(unsigned)}")

        signature.load(f"#{BATCH_ID}", self.lote_rps_xml())
        signature.sign()
        self.signature = signature

    def lote_rps_xml(self) -> str:
        """The exact text the batch signature covers"""
        return serialize(self.lote_rps_events())

    def lote_rps_events(self) -> List[Event]:
        events: List[Event] = [Open("LoteRps", (
            ("xmlns", ABRASF_NS),
            ("Id", BATCH_ID),
            ("versao", LAYOUT_VERSION),
        ))]
        events += text_element("NumeroLote", BATCH_NUMBER)
        events += text_element("Cnpj", self.cnpj)
        events += text_element("InscricaoMunicipal", self.inscricao_municipal)
        events += text_element("QuantidadeRps", str(len(self.records)))
        events.append(Open("ListaRps"))
        for record in self.records:
            events += record.rps_events(xmlns=False)
        events.append(Close("ListaRps"))
        events.append(Close("LoteRps"))
        return events

    def envelope_events(self) -> List[Event]:
        """EnviarLoteRpsEnvio with the batch Signature as a sibling of LoteRps"""
        events: List[Event] = [Open("EnviarLoteRpsEnvio", (
            ("xmlns", ABRASF_NS),
            ("versao", LAYOUT_VERSION),
        ))]
        events += self.lote_rps_events()
        if self.signature is not None:
            events += self.signature.signature_events()
        events.append(Close("EnviarLoteRpsEnvio"))
        return events

    def envelope_xml(self) -> str:
        return serialize(self.envelope_events())


def sign_batch(batch: Batch, profile: SigningProfile) -> Batch:
    """Sign every record with its own context, then the batch"""
    for record in batch.records:
        record.sign(profile.new_context())
    batch.sign(profile.new_context())
    logger.info(f"Signed batch of {len(batch.records)} records")
    return batch
