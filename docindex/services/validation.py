"""Upload content policy: allowed file types and size limits.

Validation is pure and runs before any store is touched.  Two policies are
configured: the document-management path accepts large scans (500 MB), the
chat-attachment path accepts a few more image formats but caps uploads at
20 MB.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath

from docindex.utils.errors import ValidationError

_DOCUMENT_EXTENSIONS = frozenset({".pdf", ".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif"})
_CHAT_EXTENSIONS = _DOCUMENT_EXTENSIONS | frozenset({".heic", ".heif", ".webp", ".gif"})

UNSUPPORTED_TYPE = "unsupported_type"
FILE_TOO_LARGE = "file_too_large"


@dataclass(frozen=True)
class UploadPolicy:
    name: str
    allowed_extensions: frozenset[str]
    max_bytes: int

    def with_max_bytes(self, max_bytes: int) -> UploadPolicy:
        return UploadPolicy(self.name, self.allowed_extensions, max_bytes)


DOCUMENT_UPLOAD_POLICY = UploadPolicy("document", _DOCUMENT_EXTENSIONS, 500 * 1024 * 1024)
CHAT_UPLOAD_POLICY = UploadPolicy("chat", _CHAT_EXTENSIONS, 20_000_000)


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: str = ""
    code: str = ""


class ContentValidator:
    """Checks a file name and size against an :class:`UploadPolicy`."""

    def __init__(self, policy: UploadPolicy = DOCUMENT_UPLOAD_POLICY) -> None:
        self._policy = policy

    @property
    def policy(self) -> UploadPolicy:
        return self._policy

    def validate(self, file_name: str, size: int) -> ValidationResult:
        """Return whether the upload is acceptable, and why not if it is not.

        The extension is the lowercased suffix after the last dot; a name
        without one is unsupported.
        """
        extension = PurePosixPath(file_name).suffix.lower()
        if extension not in self._policy.allowed_extensions:
            allowed = ", ".join(sorted(self._policy.allowed_extensions))
            return ValidationResult(
                ok=False,
                reason=f"Unsupported file type '{extension or file_name}'. Allowed: {allowed}",
                code=UNSUPPORTED_TYPE,
            )
        if size > self._policy.max_bytes:
            limit_mb = self._policy.max_bytes / (1024 * 1024)
            return ValidationResult(
                ok=False,
                reason=f"File size too large. Maximum allowed is {limit_mb:.0f} MB",
                code=FILE_TOO_LARGE,
            )
        return ValidationResult(ok=True)

    def validate_or_raise(self, file_name: str, size: int) -> None:
        result = self.validate(file_name, size)
        if not result.ok:
            raise ValidationError(result.reason, code=result.code)
