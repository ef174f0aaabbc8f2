"""
Exceptions raised while migrating legacy face templates.

Every failure is a deterministic consequence of the input bytes, so none of
these errors is worth retrying.
"""
from typing import Optional


class FaceTemplateMigrationError(Exception):
    """Base exception for all template migration errors."""

    code = "migration_error"
    default_message = "Face template migration failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class EmptyTemplateData(FaceTemplateMigrationError):
    """Input or intermediate buffer is empty where content is required."""

    code = "empty_template_data"
    default_message = "Face template data is empty"


class MalformedContainer(FaceTemplateMigrationError):
    """
    Structural violation in a JSON or AMF3 wrapper.

    Raised when:
    - A back-reference index is out of range
    - The wrapper has no 'proto' field, or it has the wrong type
    - An externalizable object or unknown marker is encountered
    - The buffer ends before the structure does
    """

    code = "malformed_container"
    default_message = "Face template container is malformed"


class DecompressionFailed(FaceTemplateMigrationError):
    """zlib signature detected but the stream could not be inflated."""

    code = "decompression_failed"
    default_message = "Face template data decompression failed"


class VectorDeserializationFailed(FaceTemplateMigrationError):
    """
    Prototype bytes do not match any known fixed-point vector encoding.

    Raised when:
    - The header is too short or names an unknown payload type
    - The declared payload length exceeds the available bytes
    - The coefficient is negative or NaN
    - The decoded vector is empty
    """

    code = "vector_deserialization_failed"
    default_message = "Failed to deserialize vector"


class FaceTemplateVersionMismatch(FaceTemplateMigrationError):
    """Embedded version byte disagrees with the version requested by the caller."""

    code = "face_template_version_mismatch"

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Expected version {expected} template but got version {actual}")
        self.expected = expected
        self.actual = actual


class UnsupportedFaceTemplateVersion(FaceTemplateMigrationError):
    """Embedded version byte is neither 16 nor 24."""

    code = "unsupported_face_template_version"

    def __init__(self, version: int):
        super().__init__(f"Unsupported face template version {version}")
        self.version = version
