"""Application key lifecycle.

A client presents an *appkey* to the signer on every pairing and API call. A
freshly generated key is ephemeral and carries the ``appkey:`` tag; once the
signer grants trust the key is hashed and the digest is committed to the key
store, so later sessions start from the persisted form. A rekey from the
signer throws the key away and starts over with a new ephemeral value.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import Callable, Optional, Protocol

import yaml

logger = logging.getLogger(__name__)

EPHEMERAL_PREFIX = "appkey:"
ID_BYTES = 24

EntropySource = Callable[[int], bytes]
DigestFunction = Callable[[bytes], str]


class KeyStore(Protocol):
    """Durable storage for the persisted application key."""

    def get(self) -> Optional[str]:
        ...

    def set(self, value: str) -> None:
        ...


class MemoryKeyStore:
    """Key store that lives for the lifetime of the process."""

    def __init__(self, value: str | None = None) -> None:
        self._value = value

    def get(self) -> Optional[str]:
        return self._value

    def set(self, value: str) -> None:
        self._value = value


class FileKeyStore:
    """Key store persisted as a small YAML document."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def get(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            loaded = yaml.safe_load(self.path.read_text()) or {}
        except yaml.YAMLError:
            logger.warning("Ignoring unreadable key store %s", self.path, exc_info=True)
            return None
        if not isinstance(loaded, dict):
            return None
        value = loaded.get("appkey")
        return str(value) if value else None

    def set(self, value: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(yaml.safe_dump({"appkey": value}))
        try:
            self.path.chmod(0o600)
        except OSError:  # pragma: no cover - platform dependent
            logger.debug("Could not restrict permissions on %s", self.path)


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def random_id(entropy: EntropySource = os.urandom, size: int = ID_BYTES) -> str:
    """Return ``size`` random bytes rendered as concatenated decimal numbers.

    ``bytes([7, 200, 31])`` becomes ``"720031"``: no separators and no padding,
    which is the correlation id format the signer echoes back.
    """

    return "".join(str(byte) for byte in entropy(size))


def is_ephemeral(appkey: str) -> bool:
    return EPHEMERAL_PREFIX in appkey


class AppKeyManager:
    """Derive, promote and rotate application keys against a key store."""

    def __init__(
        self,
        store: KeyStore,
        entropy: EntropySource = os.urandom,
        digest: DigestFunction = sha256_hex,
    ) -> None:
        self.store = store
        self.entropy = entropy
        self.digest = digest

    def new_id(self) -> str:
        return random_id(self.entropy)

    def generate(self) -> str:
        """Return a fresh ephemeral key."""

        return EPHEMERAL_PREFIX + self.new_id()

    def initial(self) -> str:
        """Return the persisted key when one exists, otherwise an ephemeral key."""

        saved = self.store.get()
        if saved:
            return saved
        return self.generate()

    def promote(self, appkey: str) -> str:
        """Commit the trusted form of ``appkey`` and return the key to use from now on."""

        hashed = self.digest(appkey.encode("utf-8")) if is_ephemeral(appkey) else appkey
        saved = self.store.get()
        if saved and saved == hashed:
            return appkey

        logger.info("Persisting application key after pairing")
        self.store.set(hashed)
        return self.store.get() or hashed
