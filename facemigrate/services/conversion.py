"""
Conversion of legacy face templates to normalized, version-tagged vectors.

Each call is independent: the converter holds configuration only, so a
single instance can be shared between threads.
"""
from typing import Callable, Iterable, List, NamedTuple, Optional, Tuple, Union

from ..config import get_settings
from ..exceptions import FaceTemplateMigrationError, FaceTemplateVersionMismatch
from ..logging_config import get_logger
from ..models import OutputTemplate, VersionTag
from . import container_resolver, vector_codec
from .template_assembler import assemble, check_version, to_version_tag

logger = get_logger(__name__)


class BatchResult(NamedTuple):
    """Outcome of a batch conversion, in input order."""
    templates: List[OutputTemplate]
    skipped: List[int]  # indices dropped for a version mismatch
    errors: List[Tuple[int, FaceTemplateMigrationError]]

    @property
    def dropped(self) -> int:
        return len(self.skipped) + len(self.errors)


class TemplateConverter:
    """Runs the resolve -> decode -> assemble pipeline."""

    def __init__(self, max_unwrap_depth: Optional[int] = None, fail_fast: Optional[bool] = None):
        settings = get_settings()
        self.max_unwrap_depth = (
            settings.max_unwrap_depth if max_unwrap_depth is None else max_unwrap_depth
        )
        self.fail_fast = settings.fail_fast if fail_fast is None else fail_fast

    def version_of(self, data: bytes) -> int:
        """Return the raw version byte without decoding the vector payload."""
        prototype = container_resolver.resolve(data, self.max_unwrap_depth)
        return vector_codec.version_byte(prototype.proto)

    def convert_one(self, data: bytes, expected_version: Union[VersionTag, int]) -> OutputTemplate:
        """
        Convert one legacy template.

        Raises:
            FaceTemplateVersionMismatch: embedded version differs from expected_version
            FaceTemplateMigrationError: any other decoding failure
        """
        prototype = container_resolver.resolve(data, self.max_unwrap_depth)
        embedded = vector_codec.version_byte(prototype.proto)
        # Checked before the payload so mismatches are cheap to filter out
        check_version(embedded, expected_version)
        raw = vector_codec.decode(prototype.proto)
        return assemble(raw, expected_version, embedded_version=embedded)

    def convert_matching(self, data: bytes, expected_version: VersionTag) -> OutputTemplate:
        """
        Convert a template only if it carries expected_version.

        Used for filtering: any other embedded byte, unsupported ones
        included, raises FaceTemplateVersionMismatch.
        """
        prototype = container_resolver.resolve(data, self.max_unwrap_depth)
        embedded = vector_codec.version_byte(prototype.proto)
        if embedded != expected_version:
            raise FaceTemplateVersionMismatch(expected=int(expected_version), actual=embedded)
        raw = vector_codec.decode(prototype.proto)
        return assemble(raw, expected_version, embedded_version=embedded)

    def convert_auto_version(self, data: bytes) -> OutputTemplate:
        """
        Convert as V16, falling back to V24.

        This is a retry policy, not content sniffing: when both attempts fail
        the V24 error is raised.
        """
        try:
            return self.convert_one(data, VersionTag.V16)
        except FaceTemplateMigrationError as e:
            logger.debug("V16 conversion failed (%s), retrying as V24", e.code)
        return self.convert_one(data, VersionTag.V24)

    def _run_batch(
        self,
        items: Iterable[bytes],
        convert: Callable[[bytes], OutputTemplate],
        fail_fast: Optional[bool],
        skip_mismatch: bool,
    ) -> BatchResult:
        if fail_fast is None:
            fail_fast = self.fail_fast

        result = BatchResult([], [], [])
        for index, data in enumerate(items):
            try:
                result.templates.append(convert(data))
            except FaceTemplateMigrationError as e:
                if skip_mismatch and isinstance(e, FaceTemplateVersionMismatch):
                    logger.debug("Skipping template %d: %s", index, e, extra={"item": index})
                    result.skipped.append(index)
                    continue
                if fail_fast:
                    raise
                logger.warning("Dropping template %d: %s", index, e,
                               extra={"item": index, "error_code": e.code})
                result.errors.append((index, e))
        return result

    def convert_batch(
        self,
        items: Iterable[bytes],
        expected_version: Optional[Union[VersionTag, int]] = None,
        fail_fast: Optional[bool] = None,
    ) -> BatchResult:
        """
        Convert many templates.

        With an expected_version, templates carrying any other version byte
        are skipped; without one, each template goes through the V16 -> V24
        fallback and every failure counts as an error. Errors drop only the
        failing item unless fail_fast is set.
        """
        if expected_version is None:
            return self._run_batch(items, self.convert_auto_version, fail_fast, skip_mismatch=False)
        expected = to_version_tag(expected_version)
        return self._run_batch(
            items, lambda data: self.convert_matching(data, expected), fail_fast, skip_mismatch=True
        )

    def convert_many(
        self,
        items: Iterable[bytes],
        expected_version: Union[VersionTag, int],
        fail_fast: Optional[bool] = None,
    ) -> List[OutputTemplate]:
        """Convert many templates and return only those of expected_version."""
        return self.convert_batch(items, expected_version, fail_fast).templates

    def convert_many_auto_version(
        self,
        items: Iterable[bytes],
        fail_fast: Optional[bool] = None,
    ) -> List[OutputTemplate]:
        """Convert every template with the V16 -> V24 fallback."""
        return self.convert_batch(items, None, fail_fast).templates


def get_converter() -> TemplateConverter:
    """Converter configured from the application settings."""
    return TemplateConverter()


def convert_one(data: bytes, expected_version: Union[VersionTag, int]) -> OutputTemplate:
    return get_converter().convert_one(data, expected_version)


def convert_many(
    items: Iterable[bytes],
    expected_version: Union[VersionTag, int],
    fail_fast: Optional[bool] = None,
) -> List[OutputTemplate]:
    return get_converter().convert_many(items, expected_version, fail_fast)


def convert_many_auto_version(
    items: Iterable[bytes],
    fail_fast: Optional[bool] = None,
) -> List[OutputTemplate]:
    return get_converter().convert_many_auto_version(items, fail_fast)


def version_of(data: bytes) -> int:
    return get_converter().version_of(data)
