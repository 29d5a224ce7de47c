"""
Query a submitted batch and save every returned invoice next to the name of
the record it was issued for.

    python consult.py input.yml --protocolo 0001234567
"""
from datetime import datetime, timezone
from pathlib import Path
import argparse
import asyncio
import logging
import sys

from batch import Batch
from config import load_batch_config
from consulta import ConsultaLote, Invoice, match_invoices
from errors import ConfigurationError, NfseError, TransportError
from transport import NfseClient

logger = logging.getLogger(__name__)


def ask_protocolo(production: bool, stdin=None, stdout=None) -> str:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    environment = "PRODUÇÃO" if production else "teste"
    stdout.write(f"Digite o número de protocolo no ambiente de {environment}: ")
    stdout.flush()
    return stdin.readline().strip()


def invoice_file_name(invoice: Invoice) -> str:
    record = invoice.record
    if record is None:
        return f"NFS_{invoice.numero}_sem_rps.xml"
    return f"{record.nome_arquivo or record.id}_NFS.xml"


def save_invoices(invoices, directory: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for invoice in invoices:
        path = directory / invoice_file_name(invoice)
        path.write_bytes(invoice.xml)
        logger.info(f"Invoice {invoice.numero} saved to {path}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Fetch the invoices issued for a batch")
    parser.add_argument("input", nargs="?", default="input.yml", help="YAML input file")
    parser.add_argument("--protocolo", help="protocol number returned when the batch was sent")
    parser.add_argument("--output", help="directory for the invoice files")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    try:
        config = load_batch_config(args.input)
        batch = Batch.from_config(config)
    except ConfigurationError as e:
        logger.error(str(e))
        return 2

    protocolo = args.protocolo or ask_protocolo(config.producao)
    if not protocolo:
        logger.error("no protocol number given")
        return 2

    consulta = ConsultaLote.from_config(config, protocolo)
    client = NfseClient(production=config.producao, cert_path=config.certificado_pem)
    try:
        resposta = asyncio.run(client.consultar_lote_rps(consulta.xml()))
        invoices = match_invoices(resposta, batch.records)
    except TransportError as e:
        logger.error(f"{str(e)} {e.body or ''}")
        return 1
    except NfseError as e:
        logger.error(str(e))
        return 1

    if not invoices:
        logger.error(f"No invoices returned for protocol {protocolo}")
        return 1

    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d-%H-%M")
    directory = Path(args.output or f"output-{protocolo}-{stamp}")
    save_invoices(invoices, directory)

    unmatched = [invoice.numero for invoice in invoices if invoice.record is None]
    print(f"{len(invoices)} notas fiscais salvas em {directory}")
    if unmatched:
        logger.error(f"Invoices without a matching record: {', '.join(unmatched)}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
