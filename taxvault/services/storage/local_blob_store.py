"""
Local Filesystem Blob Store

Layout under the storage root:

    {root}/{owner_id}/{unixMillis}-{originalName}.encrypted       envelope bytes
    {root}/{owner_id}/{unixMillis}-{originalName}.encrypted.meta  JSON sidecar
    {root}/{owner_id}/{unixMillis}-{originalName}                 legacy, unencrypted

Files uploaded before encryption was introduced are plain files without the
.encrypted suffix. Their database references never got updated, so a lookup
by name always looks for the encrypted variant first and falls back to the
plain file.

Blocking work (file I/O, scrypt, AES-GCM) runs in worker threads so the
event loop keeps serving other requests.
"""

import asyncio
import os
import tempfile
import time
from pathlib import Path, PurePosixPath
from typing import Callable, Optional

import structlog
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from taxvault.crypto import EncryptionEngine
from taxvault.models.files import (
    ENCRYPTED_SUFFIX,
    METADATA_SUFFIX,
    ResolvedFile,
    StoredFileMetadata,
    StoredFileRecord,
    UploadResult,
    guess_mime_type,
    original_name_from_stored,
    strip_control_chars,
    upload_millis_from_stored,
)
from taxvault.services.storage.interface import (
    BlobStoreInterface,
    FileTooLargeError,
    InvalidFileNameError,
    NotFoundError,
    UnsupportedFileTypeError,
)


MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB

ALLOWED_MIME_TYPES = frozenset({
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})

FILE_URL_PREFIX = "/files"
TEMP_SUFFIX = ".tmp"

logger = structlog.get_logger(__name__)


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


_write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
    retry=(
        retry_if_exception_type(OSError)
        & retry_if_not_exception_type((FileNotFoundError, PermissionError))
    ),
    reraise=True,
)


def _write_temp(directory: Path, data: bytes) -> Path:
    """Unique hidden temp file; concurrent writers never share one."""
    fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".", suffix=TEMP_SUFFIX)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return Path(tmp_name)


@_write_retry
def _write_atomic(path: Path, data: bytes) -> None:
    """Write via a temp file so readers never see a half-written file."""
    tmp = _write_temp(path.parent, data)
    try:
        os.replace(tmp, path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


@_write_retry
def _publish_blob(owner_dir: Path, original_name: str, millis: int, data: bytes) -> Path:
    """
    Store ``data`` as {millis}-{name}.encrypted under the first free millis.

    link() refuses an existing target, so claiming the name and making the
    complete blob visible is one step. Concurrent uploads in the same
    millisecond end up on distinct names.
    """
    tmp = _write_temp(owner_dir, data)
    try:
        while True:
            path = owner_dir / f"{millis}-{original_name}{ENCRYPTED_SUFFIX}"
            try:
                os.link(tmp, path)
                return path
            except FileExistsError:
                millis += 1
    finally:
        tmp.unlink(missing_ok=True)


def _metadata_path(blob_path: Path) -> Path:
    return blob_path.with_name(blob_path.name + METADATA_SUFFIX)


class LocalBlobStore(BlobStoreInterface):
    """
    Blob store on the local filesystem.

    The encryption engine (and with it the shared password) is injected;
    the store never reads configuration on its own.
    """

    def __init__(
        self,
        root_dir: Path,
        engine: EncryptionEngine,
        max_file_size_bytes: int = MAX_FILE_SIZE,
        allowed_mime_types: frozenset[str] = ALLOWED_MIME_TYPES,
        clock: Optional[Callable[[], int]] = None,
    ):
        self._root = Path(root_dir)
        self._engine = engine
        self._max_file_size = max_file_size_bytes
        self._allowed_mime_types = frozenset(m.lower() for m in allowed_mime_types)
        self._clock = clock or _now_millis

    @property
    def root_dir(self) -> Path:
        return self._root

    @staticmethod
    def logical_url(owner_id: str, stored_name: str) -> str:
        return f"{FILE_URL_PREFIX}/{owner_id}/{stored_name}"

    # ------------------------------------------------------------------
    # Name handling
    # ------------------------------------------------------------------

    def _owner_dir(self, owner_id: str) -> Path:
        if (
            not owner_id
            or owner_id in (".", "..")
            or "/" in owner_id
            or "\\" in owner_id
        ):
            raise InvalidFileNameError(f"Invalid owner id: {owner_id!r}")
        return self._root / owner_id

    @staticmethod
    def _clean_stored_name(reference: str) -> str:
        """
        Reduce a stored name or logical URL to a bare filename.

        "/files/u1/123-a.pdf" -> "123-a.pdf"
        """
        name = (reference or "").strip().rsplit("/", 1)[-1]
        if (
            not name
            or name in (".", "..")
            or "\\" in name
            or name.endswith(METADATA_SUFFIX)
            or name.endswith(TEMP_SUFFIX)
        ):
            raise InvalidFileNameError(f"Invalid stored file name: {reference!r}")
        return name

    @staticmethod
    def _clean_original_name(original_name: str) -> str:
        cleaned = strip_control_chars((original_name or "").replace("\\", "/"))
        name = PurePosixPath(cleaned).name.strip()
        if not name or name in (".", ".."):
            raise InvalidFileNameError("Uploaded file has no name")
        return name

    def _ensure_owner_dir(self, owner_id: str) -> Path:
        owner_dir = self._owner_dir(owner_id)
        owner_dir.mkdir(parents=True, exist_ok=True)
        return owner_dir

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def _read_metadata(self, blob_path: Path) -> Optional[StoredFileMetadata]:
        meta_path = _metadata_path(blob_path)
        try:
            raw = meta_path.read_bytes()
        except FileNotFoundError:
            logger.debug("metadata_missing", stored_name=blob_path.name)
            return None
        except OSError as e:
            logger.warning("metadata_unreadable", stored_name=blob_path.name, error=str(e))
            return None

        try:
            return StoredFileMetadata.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "metadata_invalid",
                stored_name=blob_path.name,
                error_count=e.error_count(),
            )
            return None

    async def load_metadata(
        self,
        owner_id: str,
        stored_name: str,
    ) -> Optional[StoredFileMetadata]:
        """Sidecar metadata for a stored file, or None when absent/unparsable."""
        blob_path = self._owner_dir(owner_id) / self._clean_stored_name(stored_name)
        return await asyncio.to_thread(self._read_metadata, blob_path)

    # ------------------------------------------------------------------
    # BlobStoreInterface
    # ------------------------------------------------------------------

    async def ensure_owner_space(self, owner_id: str) -> None:
        await asyncio.to_thread(self._ensure_owner_dir, owner_id)

    async def save(
        self,
        owner_id: str,
        original_name: str,
        mime_type: str,
        content: bytes,
    ) -> UploadResult:
        # Validation happens before any encryption work
        if len(content) > self._max_file_size:
            raise FileTooLargeError(len(content), self._max_file_size)

        normalized_type = (mime_type or "").strip().lower()
        if normalized_type not in self._allowed_mime_types:
            raise UnsupportedFileTypeError(mime_type, self._allowed_mime_types)

        name = self._clean_original_name(original_name)
        owner_dir = await asyncio.to_thread(self._ensure_owner_dir, owner_id)

        envelope_bytes = await asyncio.to_thread(self._engine.encrypt_bytes, content)

        blob_path = await asyncio.to_thread(
            _publish_blob, owner_dir, name, self._clock(), envelope_bytes
        )

        metadata = StoredFileMetadata(
            original_name=name,
            file_type=normalized_type,
            original_size=len(content),
            encrypted_size=len(envelope_bytes),
        )
        try:
            await asyncio.to_thread(
                _write_atomic, _metadata_path(blob_path), metadata.to_json_bytes()
            )
        except OSError as e:
            # The blob is stored; reads fall back to name-derived metadata
            logger.warning("metadata_write_failed", stored_name=blob_path.name, error=str(e))

        logger.info(
            "file_stored",
            owner_id=owner_id,
            stored_name=blob_path.name,
            original_size=len(content),
            encrypted_size=len(envelope_bytes),
        )

        return UploadResult(
            stored_name=blob_path.name,
            file_url=self.logical_url(owner_id, blob_path.name),
            file_name=name,
            file_type=normalized_type,
        )

    def _locate(self, owner_dir: Path, name: str) -> Optional[Path]:
        """Encrypted variant first, then the name as given."""
        if not name.endswith(ENCRYPTED_SUFFIX):
            encrypted_path = owner_dir / f"{name}{ENCRYPTED_SUFFIX}"
            if encrypted_path.is_file():
                return encrypted_path

        path = owner_dir / name
        if path.is_file():
            return path
        return None

    async def resolve(self, owner_id: str, stored_name: str) -> ResolvedFile:
        owner_dir = self._owner_dir(owner_id)
        name = self._clean_stored_name(stored_name)

        path = await asyncio.to_thread(self._locate, owner_dir, name)
        if path is None:
            raise NotFoundError(f"File not found: {name}")

        try:
            data = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            # Removed between the lookup and the read
            raise NotFoundError(f"File not found: {name}") from None

        if not path.name.endswith(ENCRYPTED_SUFFIX):
            return ResolvedFile(
                stored_name=path.name,
                content=data,
                original_name=original_name_from_stored(path.name),
                mime_type=guess_mime_type(path.name),
                encrypted=False,
            )

        # MalformedEnvelopeError / AuthenticationFailedError propagate
        content = await asyncio.to_thread(self._engine.decrypt_bytes, data)
        metadata = await asyncio.to_thread(self._read_metadata, path)

        if metadata is not None:
            original_name = metadata.original_name
            mime_type = metadata.file_type
        else:
            original_name = original_name_from_stored(path.name)
            mime_type = guess_mime_type(path.name)

        return ResolvedFile(
            stored_name=path.name,
            content=content,
            original_name=original_name,
            mime_type=mime_type,
            encrypted=True,
            metadata=metadata,
        )

    def _list_sync(self, owner_id: str, owner_dir: Path) -> list[StoredFileRecord]:
        if not owner_dir.is_dir():
            return []

        records = []
        for path in owner_dir.iterdir():
            if not path.name.endswith(ENCRYPTED_SUFFIX) or not path.is_file():
                continue
            records.append(StoredFileRecord(
                owner_id=owner_id,
                stored_name=path.name,
                file_url=self.logical_url(owner_id, path.name),
                encrypted_size_bytes=path.stat().st_size,
                metadata=self._read_metadata(path),
            ))

        records.sort(
            key=lambda r: (upload_millis_from_stored(r.stored_name) or 0, r.stored_name),
            reverse=True,
        )
        return records

    async def list_files(self, owner_id: str) -> list[StoredFileRecord]:
        owner_dir = self._owner_dir(owner_id)
        return await asyncio.to_thread(self._list_sync, owner_id, owner_dir)
