from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional
from urllib.parse import quote, urlencode
import hashlib
import hmac
import logging
import re
import time
import uuid

from expense_tracker.core.config import settings

logger = logging.getLogger(__name__)

class SignatureError(Exception):
    """Raised when a pre-signed storage URL is malformed, tampered with or expired."""

class InvalidObjectKey(ValueError):
    """Raised when a key does not name a location inside the store."""

@dataclass(frozen=True)
class StoredObject:
    data: bytes
    content_type: str

def new_object_key(filename: str) -> str:
    """Unique storage key for an uploaded receipt, keeping a sanitized filename."""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    name = re.sub(r"[^A-Za-z0-9._-]", "_", name).strip("._")[:128] or "file"
    return f"receipts/{uuid.uuid4().hex}/{name}"

class ObjectStorage(ABC):
    """
    Receipt object store addressed by key, reachable through pre-signed URLs.

    Signatures are HMAC-SHA256 over method, key, content type and expiry, so
    a URL issued for a PUT cannot be replayed as a GET or with another type.
    """

    def __init__(self, secret: str, route: str, clock: Callable[[], float] = time.time):
        self._secret = secret.encode("utf-8")
        self._route = route.rstrip("/")
        self._clock = clock

    def _signature(self, method: str, key: str, content_type: str, expires: int) -> str:
        payload = "\n".join([method.upper(), key, content_type, str(expires)])
        return hmac.new(self._secret, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    def presign(self, method: str, key: str, base_url: str, expires_in: int, content_type: str = "") -> str:
        expires = int(self._clock()) + expires_in
        query = urlencode({
            "expires": expires,
            "signature": self._signature(method, key, content_type, expires),
        })
        return f"{base_url.rstrip('/')}{self._route}/{quote(key)}?{query}"

    def verify(self, method: str, key: str, expires: Optional[str], signature: Optional[str], content_type: str = "") -> None:
        if not expires or not signature:
            raise SignatureError("Missing signature")
        try:
            expires_at = int(expires)
        except ValueError:
            raise SignatureError("Malformed expiry")
        expected = self._signature(method, key, content_type, expires_at)
        if not hmac.compare_digest(expected, signature):
            raise SignatureError("Signature mismatch")
        if expires_at < self._clock():
            raise SignatureError("Signature expired")

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> None:
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[StoredObject]:
        pass

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

class InMemoryObjectStorage(ObjectStorage):
    def __init__(self, secret: str, route: str, clock: Callable[[], float] = time.time):
        super().__init__(secret, route, clock)
        self._objects: Dict[str, StoredObject] = {}

    def put(self, key: str, data: bytes, content_type: str) -> None:
        self._objects[key] = StoredObject(data=data, content_type=content_type)
        logger.info(f"Stored object {key} ({len(data)} bytes, {content_type})")

    def get(self, key: str) -> Optional[StoredObject]:
        return self._objects.get(key)

class FileSystemObjectStorage(ObjectStorage):
    """Objects on local disk; the content type lives in a sidecar file."""

    def __init__(self, root: str, secret: str, route: str, clock: Callable[[], float] = time.time):
        super().__init__(secret, route, clock)
        self._root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root not in path.parents:
            raise InvalidObjectKey(f"Key escapes storage root: {key}")
        return path

    def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        path.with_name(path.name + ".content-type").write_text(content_type)
        logger.info(f"Stored object {key} at {path} ({len(data)} bytes)")

    def get(self, key: str) -> Optional[StoredObject]:
        try:
            path = self._path(key)
        except InvalidObjectKey:
            logger.warning(f"Lookup of out-of-root key {key!r}")
            return None
        if not path.is_file():
            return None
        meta = path.with_name(path.name + ".content-type")
        content_type = meta.read_text() if meta.is_file() else "application/octet-stream"
        return StoredObject(data=path.read_bytes(), content_type=content_type)

def build_object_storage() -> ObjectStorage:
    route = f"{settings.API_PREFIX}/storage"
    if settings.STORAGE_BACKEND == "filesystem":
        return FileSystemObjectStorage(settings.STORAGE_DIR, settings.STORAGE_SIGNING_SECRET, route)
    if settings.STORAGE_BACKEND != "memory":
        raise ValueError(f"Unknown STORAGE_BACKEND '{settings.STORAGE_BACKEND}'")
    return InMemoryObjectStorage(settings.STORAGE_SIGNING_SECRET, route)

# Global Accessor
object_storage = build_object_storage()

def get_object_storage() -> ObjectStorage:
    return object_storage
