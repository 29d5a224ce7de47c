# send.py
"""
Sign the batch described by a YAML file and submit it to the NFS-e service.

    python send.py input.yml
"""
import argparse
import asyncio
import logging
import sys

from batch import Batch, sign_batch
from config import load_batch_config
from credentials import load_signing_profile
from errors import ConfigurationError, TransportError
from transport import NfseClient

logger = logging.getLogger(__name__)


def confirm(count: int, production: bool, stdin=None, stdout=None) -> bool:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    environment = "PRODUÇÃO" if production else "teste"
    stdout.write(
        f"Digite SIM para confirmar a emissão de {count} notas fiscais em ambiente de {environment}: "
    )
    stdout.flush()
    return stdin.readline().strip() == "SIM"


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Sign and send a batch of RPS records")
    parser.add_argument("input", nargs="?", default="input.yml", help="YAML input file")
    parser.add_argument("--yes", action="store_true", help="skip the confirmation prompt")
    parser.add_argument("--dry-run", action="store_true", help="print the signed XML and stop")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    try:
        config = load_batch_config(args.input)
        profile = load_signing_profile(config)
        batch = sign_batch(Batch.from_config(config), profile)
    except ConfigurationError as e:
        logger.error(str(e))
        return 2

    envio_xml = batch.envelope_xml()
    if args.dry_run:
        print(envio_xml)
        return 0

    if not args.yes and not confirm(len(batch.records), config.producao):
        logger.error("confirmation failed")
        return 1

    client = NfseClient(production=config.producao, cert_path=config.certificado_pem)
    try:
        protocolo = asyncio.run(client.recepcionar_lote_rps(envio_xml))
    except TransportError as e:
        logger.error(f"{str(e)} {e.body or ''}")
        return 1

    print(f"Enviado com sucesso! Protocolo: {protocolo}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
