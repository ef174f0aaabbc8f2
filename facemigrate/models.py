"""Value types passed between the migration pipeline stages."""
from enum import Enum, IntEnum
from typing import Any, Dict

import numpy as np
from pydantic import BaseModel, ConfigDict, field_validator


class VersionTag(IntEnum):
    """Destination face template family, keyed by the legacy version byte."""
    V16 = 16
    V24 = 24


class VectorFormat(str, Enum):
    """Fixed-point vector encodings found in legacy prototypes."""
    COMPACT_128 = "compact128"  # 128 x int8 + bfloat16 coefficient
    COMPRESSED_8 = "compressed8"  # 8-bit codes through the dequantization table
    PACKED_12 = "packed12"  # two 12-bit values per 3 bytes
    LINEAR_16 = "linear16"  # plain little-endian int16


class Prototype(BaseModel):
    """Fully unwrapped vector-encoding bytes."""

    model_config = ConfigDict(frozen=True)

    proto: bytes


class RawFixedPointVector(BaseModel):
    """Decoded, unscaled vector: magnitudes times coeff gives the feature values."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    coeff: float
    magnitudes: np.ndarray
    format: VectorFormat

    @field_validator("coeff")
    @classmethod
    def coeff_non_negative(cls, v: float) -> float:
        # NaN fails this comparison too
        if not v >= 0:
            raise ValueError("coefficient must be >= 0")
        return v

    @field_validator("magnitudes")
    @classmethod
    def magnitudes_int16(cls, v: np.ndarray) -> np.ndarray:
        if v.dtype != np.int16 or v.ndim != 1:
            raise ValueError("magnitudes must be a 1-D int16 array")
        return v

    def __len__(self) -> int:
        return int(self.magnitudes.shape[0])


class OutputTemplate(BaseModel):
    """Normalized, version-tagged float32 face template."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    version: VersionTag
    data: np.ndarray

    @field_validator("data")
    @classmethod
    def freeze_data(cls, v: np.ndarray) -> np.ndarray:
        if v.dtype != np.float32 or v.ndim != 1:
            raise ValueError("data must be a 1-D float32 array")
        v.setflags(write=False)
        return v

    @property
    def dimensions(self) -> int:
        return int(self.data.shape[0])

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "version": int(self.version),
            "data": self.data.tolist(),
        }
