#!/usr/bin/env python3
"""
Batch conversion of legacy face template files.
Reads every blob from the input directory (or the given files), converts it
and writes one JSON line per converted template.
"""
import os
import sys
import json
import base64
import argparse
from tqdm import tqdm

# Add the current directory to python path to allow imports
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from facemigrate.config import get_settings
from facemigrate.exceptions import FaceTemplateMigrationError, FaceTemplateVersionMismatch
from facemigrate.logging_config import configure_from_settings
from facemigrate.models import VersionTag
from facemigrate.services.conversion import TemplateConverter
from facemigrate.services.encoding_utils import template_to_bytes


def collect_files(paths):
    """Expand directories into the regular files they contain, sorted."""
    files = []
    for path in paths:
        if os.path.isdir(path):
            for name in sorted(os.listdir(path)):
                full = os.path.join(path, name)
                if os.path.isfile(full):
                    files.append(full)
        else:
            files.append(path)
    return files


def template_record(path, template, output_format="json"):
    """JSON line for one template; "f32" stores data as base64 little-endian float32."""
    record = {"file": os.path.basename(path), "version": int(template.version)}
    if output_format == "f32":
        record["data_f32"] = base64.b64encode(template_to_bytes(template)).decode("ascii")
    else:
        record["data"] = template.to_dict()["data"]
    return record


def convert_files(files, output, version=None, fail_fast=False, output_format="json"):
    """
    Convert template files and write JSON lines to output.

    With a version, files of any other version are skipped; without one,
    each file is tried as V16 then V24 and a failure of both is an error.

    Returns:
        Tuple of (converted, skipped, failed) counts
    """
    converter = TemplateConverter(fail_fast=fail_fast)
    converted = skipped = failed = 0

    for path in tqdm(files, desc="Converting templates", unit="template"):
        try:
            with open(path, "rb") as f:
                data = f.read()
            if version is None:
                template = converter.convert_auto_version(data)
            else:
                template = converter.convert_matching(data, version)
        except (FaceTemplateMigrationError, OSError) as e:
            if version is not None and isinstance(e, FaceTemplateVersionMismatch):
                skipped += 1
                continue
            if fail_fast:
                raise
            print(f"Error converting {path}: {e}", file=sys.stderr)
            failed += 1
            continue

        output.write(json.dumps(template_record(path, template, output_format)) + "\n")
        converted += 1

    return converted, skipped, failed


def main(argv=None):
    parser = argparse.ArgumentParser(description="Convert legacy face templates to normalized vectors.")
    parser.add_argument("inputs", nargs="+", help="Template files or directories of template files.")
    parser.add_argument("-o", "--output", help="Output JSON lines file (default: stdout).")
    parser.add_argument("--version", type=int, choices=[v.value for v in VersionTag],
                        help="Only convert templates of this version (default: try 16, then 24).")
    parser.add_argument("--fail-fast", action="store_true", help="Stop at the first template that fails.")
    parser.add_argument("--format", choices=["json", "f32"], default="json", dest="output_format",
                        help="Template data as a JSON list or as base64 little-endian float32.")

    args = parser.parse_args(argv)

    settings = get_settings()
    configure_from_settings(settings)

    files = collect_files(args.inputs)
    print(f"Found {len(files)} template files.", file=sys.stderr)

    version = VersionTag(args.version) if args.version is not None else None
    fail_fast = args.fail_fast or settings.fail_fast

    out = open(args.output, "w", encoding="utf-8") if args.output else sys.stdout
    try:
        converted, skipped, failed = convert_files(
            files, out, version=version, fail_fast=fail_fast, output_format=args.output_format
        )
    except (FaceTemplateMigrationError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if out is not sys.stdout:
            out.close()

    print(f"Converted {converted} templates. Skipped: {skipped}. Errors: {failed}", file=sys.stderr)
    return 0 if failed == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
