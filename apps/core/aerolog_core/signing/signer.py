"""Signing abstraction for content hashes."""

import base64
import hashlib
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from aerolog_core.settings import get_settings

logger = logging.getLogger(__name__)

PSS_PADDING = padding.PSS(
    mgf=padding.MGF1(hashes.SHA256()),
    salt_length=padding.PSS.MAX_LENGTH,
)


class Signer(ABC):
    """Abstract signer interface."""

    @abstractmethod
    def sign(self, data: bytes) -> bytes:
        """Sign data and return signature bytes."""

    @abstractmethod
    def verify(self, data: bytes, signature: bytes) -> bool:
        """Return True if signature is valid for data."""

    @abstractmethod
    def get_key_id(self) -> str:
        """Get key identifier."""

    def sign_hash(self, content_hash: str) -> str:
        """Sign a hex content hash and return the base64 signature."""
        return base64.b64encode(self.sign(content_hash.encode("utf-8"))).decode("ascii")

    def verify_hash(self, content_hash: str, signature_value: str) -> bool:
        """Verify a base64 signature over a hex content hash."""
        try:
            raw = base64.b64decode(signature_value, validate=True)
        except ValueError:
            return False
        return self.verify(content_hash.encode("utf-8"), raw)


class DevLocalSigner(Signer):
    """Local signer using an RSA keypair from file, generated on first use."""

    def __init__(self, key_path: Optional[str] = None):
        self.key_path = Path(key_path or get_settings().signing_key_path)
        self._private_key = None
        self._public_key = None
        self._load_or_generate_key()
        self._key_id = self._fingerprint()

    def _load_or_generate_key(self):
        """Load or generate RSA keypair."""
        if self.key_path.exists():
            with open(self.key_path, "rb") as f:
                self._private_key = serialization.load_pem_private_key(
                    f.read(), password=None, backend=default_backend()
                )
        else:
            logger.warning(f"Signing key not found at {self.key_path}, generating a new one")
            self._private_key = rsa.generate_private_key(
                public_exponent=65537,
                key_size=2048,
                backend=default_backend(),
            )
            self.key_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.key_path, "wb") as f:
                f.write(
                    self._private_key.private_bytes(
                        encoding=serialization.Encoding.PEM,
                        format=serialization.PrivateFormat.PKCS8,
                        encryption_algorithm=serialization.NoEncryption(),
                    )
                )

        self._public_key = self._private_key.public_key()

    def _fingerprint(self) -> str:
        der = self._public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return f"local-{hashlib.sha256(der).hexdigest()[:16]}"

    def sign(self, data: bytes) -> bytes:
        """Sign data with RSA-PSS."""
        return self._private_key.sign(data, PSS_PADDING, hashes.SHA256())

    def verify(self, data: bytes, signature: bytes) -> bool:
        try:
            self._public_key.verify(signature, data, PSS_PADDING, hashes.SHA256())
        except InvalidSignature:
            return False
        return True

    def get_key_id(self) -> str:
        return self._key_id


def get_signer() -> Signer:
    """Get signer instance based on settings."""
    settings = get_settings()
    provider = settings.signing_key_provider.lower()

    if provider == "local":
        return DevLocalSigner()
    raise ValueError(f"Unknown signing provider: {provider}")
