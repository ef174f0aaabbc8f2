import unittest
import sys
import os
import numpy as np

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from facemigrate.exceptions import (
    FaceTemplateVersionMismatch,
    UnsupportedFaceTemplateVersion,
    VectorDeserializationFailed,
)
from facemigrate.models import RawFixedPointVector, VectorFormat, VersionTag
from facemigrate.services.template_assembler import assemble, check_version, normalize, scale
from facemigrate.services.vector_codec import decode

import template_fixtures as fx


def raw_vector(values, coeff=0.5):
    return RawFixedPointVector(
        coeff=coeff,
        magnitudes=np.array(values, dtype=np.int16),
        format=VectorFormat.LINEAR_16,
    )


class TestScale(unittest.TestCase):
    def test_exact_product(self):
        raw = raw_vector([3, -7, 1000, 0], coeff=0.125)
        scaled = scale(raw)
        self.assertEqual(scaled.dtype, np.float32)
        np.testing.assert_array_equal(scaled, np.array([0.375, -0.875, 125.0, 0.0], dtype=np.float32))

    def test_recover_magnitudes(self):
        values = fx.sample_values(64)
        raw = decode(fx.linear16(16, values, coeff=0.0123))
        scaled = scale(raw)
        recovered = np.rint(scaled / np.float32(raw.coeff)).astype(np.int16)
        np.testing.assert_array_equal(recovered, raw.magnitudes)


class TestNormalize(unittest.TestCase):
    def test_unit_length(self):
        template = assemble(raw_vector(fx.sample_values(128)), VersionTag.V16)
        self.assertAlmostEqual(float(np.linalg.norm(template.data.astype(np.float64))), 1.0, delta=1e-3)

    def test_zero_vector_unchanged(self):
        template = assemble(raw_vector([0] * 16), VersionTag.V24)
        np.testing.assert_array_equal(template.data, np.zeros(16, dtype=np.float32))

    def test_zero_coefficient(self):
        template = assemble(raw_vector([1, 2, 3], coeff=0.0), VersionTag.V16)
        self.assertFalse(template.data.any())

    def test_direction_preserved(self):
        out = normalize(np.array([3.0, 4.0], dtype=np.float32))
        np.testing.assert_allclose(out, [0.6, 0.8], rtol=1e-6)


class TestAssemble(unittest.TestCase):
    def test_version_tag(self):
        template = assemble(raw_vector([1, 2]), 24)
        self.assertIs(template.version, VersionTag.V24)
        self.assertEqual(template.dimensions, 2)

    def test_data_is_read_only(self):
        template = assemble(raw_vector([1, 2]), VersionTag.V16)
        with self.assertRaises(ValueError):
            template.data[0] = 1.0

    def test_embedded_version_mismatch(self):
        with self.assertRaises(FaceTemplateVersionMismatch) as ctx:
            assemble(raw_vector([1, 2]), VersionTag.V24, embedded_version=16)
        self.assertEqual(ctx.exception.expected, 24)
        self.assertEqual(ctx.exception.actual, 16)

    def test_unsupported_embedded_version(self):
        with self.assertRaises(UnsupportedFaceTemplateVersion) as ctx:
            assemble(raw_vector([1, 2]), VersionTag.V16, embedded_version=17)
        self.assertEqual(ctx.exception.version, 17)

    def test_unsupported_requested_version(self):
        with self.assertRaises(UnsupportedFaceTemplateVersion):
            assemble(raw_vector([1, 2]), 20)

    def test_empty_vector(self):
        with self.assertRaises(VectorDeserializationFailed):
            assemble(raw_vector([]), VersionTag.V16)

    def test_check_version(self):
        self.assertIs(check_version(16, 16), VersionTag.V16)
        self.assertIs(check_version(24, VersionTag.V24), VersionTag.V24)

    def test_to_dict(self):
        template = assemble(raw_vector([0, 5]), VersionTag.V16)
        self.assertEqual(template.to_dict(), {"version": 16, "data": [0.0, 1.0]})


if __name__ == "__main__":
    unittest.main()
