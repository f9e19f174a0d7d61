from __future__ import annotations

import base64
import time
from pathlib import Path
from typing import Dict, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from kalshi_oracle.errors import KalshiAuthError

PKCS1_HEADER = "BEGIN RSA PRIVATE KEY"
PKCS8_HEADER = "BEGIN PRIVATE KEY"


def _load_private_key(pem: str) -> rsa.RSAPrivateKey:
    if PKCS1_HEADER in pem:
        key_format = "PKCS#1"
    elif PKCS8_HEADER in pem:
        key_format = "PKCS#8"
    else:
        raise KalshiAuthError("Private key is neither PKCS#1 nor PKCS#8 PEM")

    try:
        key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KalshiAuthError(f"Could not load {key_format} private key: {exc}") from exc

    if not isinstance(key, rsa.RSAPrivateKey):
        raise KalshiAuthError(f"{key_format} key is not an RSA key")
    return key


class KalshiAuth:
    """Signs Kalshi requests with RSA-PSS/SHA-256 over ``ts + METHOD + path``."""

    def __init__(self, key_id: str, pem: str) -> None:
        self.key_id = key_id
        self._private_key = _load_private_key(pem)

    @classmethod
    def from_file(cls, key_id: str, path: str) -> "KalshiAuth":
        try:
            pem = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise KalshiAuthError(f"Could not read private key at {path}: {exc}") from exc
        return cls(key_id, pem)

    def public_key(self) -> rsa.RSAPublicKey:
        return self._private_key.public_key()

    def sign(self, message: str) -> str:
        # PSS draws a fresh salt on every call, so signatures are not repeatable.
        try:
            signature = self._private_key.sign(
                message.encode("utf-8"),
                padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=padding.PSS.DIGEST_LENGTH),
                hashes.SHA256(),
            )
        except (ValueError, TypeError) as exc:
            raise KalshiAuthError(f"Request signing failed: {exc}") from exc
        return base64.b64encode(signature).decode("ascii")

    def headers(self, method: str, path: str, timestamp_ms: Optional[int] = None) -> Dict[str, str]:
        ts = str(timestamp_ms if timestamp_ms is not None else int(time.time() * 1000))
        sign_path = path.split("?", 1)[0]
        return {
            "KALSHI-ACCESS-KEY": self.key_id,
            "KALSHI-ACCESS-TIMESTAMP": ts,
            "KALSHI-ACCESS-SIGNATURE": self.sign(f"{ts}{method.upper()}{sign_path}"),
            "Content-Type": "application/json",
        }
