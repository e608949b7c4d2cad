from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import ScanSettings
from .display import format_bytes, format_digest_rows, format_issues
from .errors import ScannerError
from .processors import DigestingProcessor
from .scanner import ClasspathScanner


def build_json_payload(
    prefixes: list[str], scanner: ClasspathScanner, processor: DigestingProcessor
) -> dict[str, object]:
    summary = scanner.summary.as_dict()
    # Counted from the digests so streamed entries of unknown size are included.
    summary["bytes_digested"] = processor.total_bytes
    summary["bytes_digested_human"] = format_bytes(processor.total_bytes)
    return {
        "prefixes": prefixes,
        "artifacts": [
            {"md5": digest.md5, "size_bytes": digest.size_bytes}
            for digest in processor.digests
        ],
        "issues": [
            {"code": issue.code, "path": issue.path, "message": issue.message}
            for issue in scanner.issues
        ],
        "summary": summary,
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Scan directories and jar/zip archives for compiled class files."
    )
    parser.add_argument(
        "prefixes",
        nargs="+",
        help="Classpath prefixes: paths to scan, or package paths looked up under --root.",
    )
    parser.add_argument(
        "--root",
        action="append",
        type=Path,
        default=None,
        help="Search root for prefixes that are not paths (repeatable).",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Maximum nested archive depth before the scan aborts.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit the scan result as JSON instead of a formatted table.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    processor = DigestingProcessor()
    try:
        settings = ScanSettings.from_env()
        if args.root:
            settings.search_roots = list(args.root)
        if args.max_depth is not None:
            settings = ScanSettings(
                search_roots=settings.search_roots,
                max_nesting_depth=args.max_depth,
                follow_symlinks=settings.follow_symlinks,
            )
        scanner = ClasspathScanner(settings)
        scanner.scan(args.prefixes, processor)
    except ScannerError as exc:
        print(f"Scan error ({exc.code}): {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(build_json_payload(args.prefixes, scanner, processor), indent=2))
        return 0

    print(f"Artifacts: {len(processor.digests)}")
    if processor.digests:
        print(format_digest_rows(processor.digests))
    print(f"Issues: {len(scanner.issues)}")
    for line in format_issues(scanner.issues):
        print(line)
    summary = scanner.summary
    print(
        "Summary: "
        f"elements_scanned={summary.elements_scanned}, "
        f"archives_scanned={summary.archives_scanned}, "
        f"nested_archives_scanned={summary.nested_archives_scanned}, "
        f"bytes_digested={processor.total_bytes} ({format_bytes(processor.total_bytes)})"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
