# config.py
"""
YAML input for a batch of RPS records.

    producao: false
    certificado_key: key.pem
    certificado_cer: cert.cer
    certificado_pem: cert_and_key.pem
    cnpj: "12345678000199"
    inscricao_municipal: "1234567"
    codigo_municipio: "3106200"
    notas_fiscais:
      - id: 1234
        competencia: 2024-01-01T00:00:00
        valor_servicos: 1000.00
        aliquota_iss: 0.02
        ...

Scalar fields accept strings and numbers and are kept as text; the text is
what ends up in the document.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional
import logging
import secrets

import yaml
from pydantic import BaseModel, Field, StrictBool, ValidationError, field_validator

from errors import ConfigurationError

logger = logging.getLogger(__name__)

RECORD_ID_LENGTH = 12


class _InputLoader(yaml.SafeLoader):
    """SafeLoader that keeps zero-padded integers such as CEP and CNPJ as text"""


def _construct_int(loader: yaml.SafeLoader, node: yaml.ScalarNode) -> Any:
    value = loader.construct_scalar(node)
    # YAML 1.1 reads 01310100 as octal
    if len(value) > 1 and value.lstrip("+-").startswith("0"):
        return value
    return loader.construct_yaml_int(node)


_InputLoader.add_constructor("tag:yaml.org,2002:int", _construct_int)


def generate_record_id() -> str:
    """Random numeric RPS number, used when the input does not set an id"""
    return "".join(secrets.choice("0123456789") for _ in range(RECORD_ID_LENGTH))


def _as_text(value: Any) -> Any:
    # bool is an int subclass; a YAML true/false is never a valid text field
    if isinstance(value, bool):
        raise ValueError("expected a string or a number")
    if isinstance(value, (int, float)):
        return str(value)
    # YAML resolves unquoted timestamps to date/datetime objects
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _check_decimal(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"{value!r} is not a decimal number")
    if not number.is_finite():
        raise ValueError(f"{value!r} is not a decimal number")
    return value


class RecordConfig(BaseModel):
    id: Optional[str] = None
    nome_arquivo: Optional[str] = None
    competencia: str
    natureza_operacao: str
    regime_especial_tributacao: str
    optante_simples_nacional: str
    incentivador_cultural: str
    item_lista_servico: str
    codigo_tributacao_municipio: str
    discriminacao: str
    valor_servicos: str
    aliquota_iss: Optional[str] = None
    cnpj: Optional[str] = None
    inscricao_municipal: Optional[str] = None
    razao_social: str
    logradouro: str
    numero: str
    complemento: Optional[str] = None
    bairro: str
    codigo_municipio: str
    uf: str
    cep: Optional[str] = None

    @field_validator('*', mode='before')
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)

    @field_validator('valor_servicos', 'aliquota_iss')
    @classmethod
    def validate_decimal(cls, v):
        return _check_decimal(v)


class BatchConfig(BaseModel):
    producao: StrictBool = False
    certificado_key: Optional[str] = None
    certificado_cer: Optional[str] = None
    certificado_pem: Optional[str] = None
    cnpj: str
    inscricao_municipal: str
    codigo_municipio: str
    notas_fiscais: List[RecordConfig] = Field(..., min_length=1)

    @field_validator('cnpj', 'inscricao_municipal', 'codigo_municipio', mode='before')
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)


def _describe(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        messages.append(f"{location}: {item['msg']}")
    return "; ".join(messages)


def batch_config_from_mapping(data: Mapping) -> BatchConfig:
    if not isinstance(data, Mapping):
        raise ConfigurationError("bad yaml input: expected a mapping at the top level")
    try:
        return BatchConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"bad yaml input: {_describe(e)}") from e


def parse_batch_config(text: str) -> BatchConfig:
    try:
        data = yaml.load(text, Loader=_InputLoader)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"bad yaml input: {str(e)}") from e
    return batch_config_from_mapping(data)


def load_batch_config(path: str) -> BatchConfig:
    """Read and validate the YAML input file"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ConfigurationError(f"unable to read input file {path}: {str(e)}") from e

    config = parse_batch_config(text)
    logger.info(f"Loaded {len(config.notas_fiscais)} records from {path}")
    return config
