import unittest
import sys
import os

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from facemigrate.exceptions import (
    EmptyTemplateData,
    FaceTemplateMigrationError,
    FaceTemplateVersionMismatch,
    MalformedContainer,
)


class TestExceptions(unittest.TestCase):
    def test_default_message(self):
        self.assertEqual(str(EmptyTemplateData()), "Face template data is empty")
        self.assertEqual(str(EmptyTemplateData(None)), "Face template data is empty")

    def test_custom_message_and_code(self):
        e = MalformedContainer("bad wrapper")
        self.assertEqual(str(e), "bad wrapper")
        self.assertEqual(e.code, "malformed_container")
        self.assertIsInstance(e, FaceTemplateMigrationError)

    def test_version_mismatch_fields(self):
        e = FaceTemplateVersionMismatch(expected=16, actual=24)
        self.assertEqual((e.expected, e.actual), (16, 24))
        self.assertEqual(e.code, "face_template_version_mismatch")


if __name__ == "__main__":
    unittest.main()
