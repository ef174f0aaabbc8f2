"""Encoding utility functions for converted templates."""
from ..models import OutputTemplate


def template_to_bytes(template: OutputTemplate) -> bytes:
    """
    Convert template data to little-endian float32 bytes for storage.

    A 128-dimension V16 template becomes 512 bytes.
    """
    return template.data.astype("<f4").tobytes()
