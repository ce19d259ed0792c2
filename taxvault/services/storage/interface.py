"""
Abstract Blob Store Interface

DESIGN DECISION: We define an abstract interface for attachment storage.
This allows us to:
1. Swap the local filesystem for object storage later
2. Use fakes in tests for the export pipeline
3. Keep the export and serving flows decoupled from file layout

The blob store does NOT do authorization. Callers pass the authenticated
user's id as owner_id; the store only guarantees that an operation never
touches another owner's space.
"""

from abc import ABC, abstractmethod

from taxvault.models.files import ResolvedFile, StoredFileRecord, UploadResult


class BlobStoreInterface(ABC):
    """
    Abstract interface for owner-partitioned encrypted file storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def ensure_owner_space(self, owner_id: str) -> None:
        """
        Create the owner's storage space if it does not exist yet.

        Idempotent.
        """
        pass

    @abstractmethod
    async def save(
        self,
        owner_id: str,
        original_name: str,
        mime_type: str,
        content: bytes,
    ) -> UploadResult:
        """
        Encrypt and store a file.

        Args:
            owner_id: Authenticated user id
            original_name: Filename as uploaded
            mime_type: Declared MIME type
            content: Plaintext bytes

        Returns:
            Stored name and logical URL of the new file

        Raises:
            FileTooLargeError: If content exceeds the size limit
            UnsupportedFileTypeError: If mime_type is not allowed
            InvalidFileNameError: If original_name is empty
        """
        pass

    @abstractmethod
    async def resolve(self, owner_id: str, stored_name: str) -> ResolvedFile:
        """
        Load a stored file back to plaintext.

        Accepts a stored name or a logical URL. Encrypted and legacy
        unencrypted files are both handled; the encrypted variant wins
        when both exist.

        Raises:
            NotFoundError: If no variant exists
            InvalidFileNameError: If the name would leave the owner's space
            MalformedEnvelopeError: If the blob is too short
            AuthenticationFailedError: If decryption does not verify
        """
        pass

    @abstractmethod
    async def list_files(self, owner_id: str) -> list[StoredFileRecord]:
        """
        List the owner's encrypted files, newest first.

        Legacy unencrypted files are not listed.
        """
        pass


class StorageError(Exception):
    """Base exception for blob store operations."""
    pass


class NotFoundError(StorageError):
    """No stored file under the requested name."""
    pass


class FileTooLargeError(StorageError):
    """Upload exceeds the configured size limit."""

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"File too large. Maximum size is {max_size // (1024 * 1024)}MB"
        )


class UnsupportedFileTypeError(StorageError):
    """Upload MIME type is not on the allow-list."""

    def __init__(self, mime_type: str, allowed: frozenset[str] = frozenset()):
        self.mime_type = mime_type
        message = f"Invalid file type: {mime_type or 'unknown'}"
        if allowed:
            message += f". Allowed types: {', '.join(sorted(allowed))}"
        super().__init__(message)


class InvalidFileNameError(StorageError):
    """Filename is empty or would escape the owner's space."""
    pass
