# api_endpoints.py
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, field_validator
import logging

from batch import Batch, sign_batch
from config import parse_batch_config
from consulta import ConsultaLote
from errors import ConfigurationError, TransportError, TransportTimeoutError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter()


class ConsultaRequest(BaseModel):
    cnpj: str = Field(..., min_length=14, max_length=14, description="14-digit CNPJ of the provider")
    inscricao_municipal: str = Field(..., min_length=1, max_length=15)
    protocolo: str = Field(..., min_length=1, max_length=50)

    @field_validator('cnpj')
    @classmethod
    def validate_cnpj(cls, v):
        if not v.isdigit():
            raise ValueError('CNPJ must contain only digits')
        return v


async def _signed_batch(request: Request) -> Batch:
    """Parse the YAML request body and sign every record and the batch"""
    from main import nfse_service

    if nfse_service.profile is None:
        raise HTTPException(
            status_code=500,
            detail="Signing key not loaded. Run key_generator.py first."
        )

    body = await request.body()
    try:
        config = parse_batch_config(body.decode('utf-8'))
        batch = Batch.from_config(config)
    except (ConfigurationError, UnicodeDecodeError) as e:
        logger.error(f"Invalid batch input: {str(e)}")
        raise HTTPException(status_code=422, detail=str(e))

    return sign_batch(batch, nfse_service.profile)


@router.post("/sign-batch")
async def sign_batch_endpoint(request: Request):
    """
    Sign a batch of RPS records given as a YAML document

    Returns the EnviarLoteRpsEnvio XML with every record signed and the batch
    signature appended, without sending it.
    """
    batch = await _signed_batch(request)
    logger.info(f"Batch of {len(batch.records)} records signed")

    return {
        "status": "success",
        "records": [record.id for record in batch.records],
        "digest": batch.signature.digest_value,
        "xml": batch.envelope_xml()
    }


@router.post("/send-batch")
async def send_batch(request: Request):
    """
    Sign a batch of RPS records and submit it to the NFS-e web service

    This endpoint:
    1. Builds an RPS fragment per record and signs it
    2. Signs the LoteRps holding the signed records
    3. Wraps EnviarLoteRpsEnvio in the RecepcionarLoteRps SOAP envelope
    4. Returns the protocol number the service assigns
    """
    from main import nfse_service

    batch = await _signed_batch(request)

    try:
        protocolo = await nfse_service.client().recepcionar_lote_rps(batch.envelope_xml())
    except TransportTimeoutError:
        raise HTTPException(status_code=504, detail="Request to NFS-e service timed out")
    except TransportError as e:
        logger.error(f"Submission failed: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))

    logger.info(f"Batch accepted - Protocolo: {protocolo}")

    return {
        "status": "success",
        "records": [record.id for record in batch.records],
        "protocolo": protocolo
    }


@router.post("/consult-batch")
async def consult_batch(request: ConsultaRequest):
    """Fetch the ConsultarLoteRpsResposta for a protocol number"""
    from main import nfse_service

    consulta = ConsultaLote(request.cnpj, request.inscricao_municipal, request.protocolo)

    try:
        resposta = await nfse_service.client().consultar_lote_rps(consulta.xml())
    except TransportTimeoutError:
        raise HTTPException(status_code=504, detail="Request to NFS-e service timed out")
    except TransportError as e:
        logger.error(f"Consultation failed: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))

    return {
        "status": "success",
        "protocolo": request.protocolo,
        "xml": resposta
    }
