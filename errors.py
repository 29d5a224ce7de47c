# errors.py
"""
Exception types shared by the signing core and its collaborators
"""


class NfseError(Exception):
    """Base class for every error raised by this package"""


class MalformedDocumentError(NfseError):
    """An event sequence does not nest properly"""


class SignaturePreconditionError(NfseError):
    """A SignatureContext was driven out of its load -> sign -> emit order"""


class ConfigurationError(NfseError, ValueError):
    """Input data is missing or cannot be used; the message names the field"""


class TransportError(NfseError):
    def __init__(self, message: str, status_code: int = None, body: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TransportTimeoutError(TransportError):
    pass
