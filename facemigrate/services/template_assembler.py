"""Turn decoded fixed-point vectors into normalized, version-tagged templates."""
from typing import Optional, Union

import numpy as np

from ..exceptions import (
    FaceTemplateVersionMismatch,
    UnsupportedFaceTemplateVersion,
    VectorDeserializationFailed,
)
from ..models import OutputTemplate, RawFixedPointVector, VersionTag


def to_version_tag(version: Union[VersionTag, int]) -> VersionTag:
    """Map a numeric version code to its tag."""
    try:
        return VersionTag(int(version))
    except ValueError:
        raise UnsupportedFaceTemplateVersion(int(version)) from None


def check_version(embedded: int, expected: Union[VersionTag, int]) -> VersionTag:
    """
    Validate the version byte carried by a prototype.

    Raises:
        UnsupportedFaceTemplateVersion: embedded version is neither 16 nor 24
        FaceTemplateVersionMismatch: embedded version differs from expected
    """
    actual = to_version_tag(embedded)
    expected = to_version_tag(expected)
    if actual != expected:
        raise FaceTemplateVersionMismatch(expected=int(expected), actual=int(actual))
    return actual


def scale(raw: RawFixedPointVector) -> np.ndarray:
    """Multiply every magnitude by the coefficient, in float32."""
    return raw.magnitudes.astype(np.float32) * np.float32(raw.coeff)


def normalize(vector: np.ndarray) -> np.ndarray:
    """L2-normalize a float32 vector; the zero vector is returned unchanged."""
    norm = np.linalg.norm(vector.astype(np.float64))
    if norm == 0.0:
        return vector.astype(np.float32)
    return (vector.astype(np.float64) / norm).astype(np.float32)


def assemble(
    raw: RawFixedPointVector,
    version: Union[VersionTag, int],
    embedded_version: Optional[int] = None,
) -> OutputTemplate:
    """
    Build the output template for a decoded vector.

    Args:
        raw: Decoded vector
        version: Version requested by the caller
        embedded_version: Version byte of the prototype, validated against version

    Returns:
        OutputTemplate with unit-length float32 data
    """
    if embedded_version is not None:
        tag = check_version(embedded_version, version)
    else:
        tag = to_version_tag(version)

    if len(raw) == 0:
        raise VectorDeserializationFailed("Decoded vector is empty")

    return OutputTemplate(version=tag, data=normalize(scale(raw)))
