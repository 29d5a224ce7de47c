# main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import logging
import os

import httpx

from credentials import load_certificate_text, load_private_key, signing_profile
from errors import ConfigurationError
from signature import SigningProfile
from transport import NfseClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="NFS-e Signing API", version="1.0.0")

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Configuration
NFSE_CERT_KEY = os.getenv("NFSE_CERT_KEY", "private_key.pem")
NFSE_CERT_CER = os.getenv("NFSE_CERT_CER", "cert.pem")
NFSE_CERT_PEM = os.getenv("NFSE_CERT_PEM", "cert_and_key.pem")
NFSE_PRODUCTION = os.getenv("NFSE_PRODUCTION", "false").lower() in ("1", "true", "yes")


class NfseService:
    def __init__(self):
        self.profile: Optional[SigningProfile] = None
        self.cert_path: Optional[str] = None
        self.production = NFSE_PRODUCTION
        # Overridden in tests to avoid the network
        self.transport: Optional[httpx.AsyncBaseTransport] = None
        self.load_keys()

    def load_keys(self):
        """Load the signing key and certificate; the service starts without them"""
        if not (os.path.exists(NFSE_CERT_KEY) and os.path.exists(NFSE_CERT_CER)):
            logger.warning(f"{NFSE_CERT_KEY} or {NFSE_CERT_CER} not found, signing disabled")
            return

        try:
            self.profile = signing_profile(
                load_private_key(NFSE_CERT_KEY),
                load_certificate_text(NFSE_CERT_CER),
            )
        except ConfigurationError as e:
            logger.error(f"Error loading keys: {str(e)}")
            raise

        if os.path.exists(NFSE_CERT_PEM):
            self.cert_path = NFSE_CERT_PEM
        else:
            logger.warning(f"{NFSE_CERT_PEM} not found, requests go out without a client certificate")

    def client(self) -> NfseClient:
        return NfseClient(
            production=self.production,
            cert_path=self.cert_path,
            transport=self.transport,
        )


nfse_service = NfseService()


@app.get("/")
async def root():
    return {
        "message": "NFS-e Signing API",
        "status": "running",
        "version": "1.0.0",
        "endpoints": {
            "sign_batch": "/api/sign-batch",
            "send_batch": "/api/send-batch",
            "consult_batch": "/api/consult-batch",
            "health": "/health"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "production": nfse_service.production,
        "keys_loaded": {
            "private_key": nfse_service.profile is not None,
            "certificate": nfse_service.profile is not None,
            "client_certificate": nfse_service.cert_path is not None
        }
    }
