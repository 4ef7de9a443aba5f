#!/usr/bin/env python3
"""
Upload one build artifact to object storage and print its fingerprint.

CLI wrapper for the uploader module. Connection settings come from the
environment (.env or exported variables); the task comes from arguments or
from a YAML task document.

Usage:
    python scripts/upload.py dist/app.tar --bucket build-artifacts
    python scripts/upload.py dist/app.tar --bucket build-artifacts --key jobs/42/app.tar --gzip
    python scripts/upload.py report.txt --bucket docs --metadata Cache-Control=no-cache --sse
    python scripts/upload.py dist/app.tar --task tasks/app.yaml
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List

# Add project root to path for imports (before other imports)
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from artifact_uploader.uploader import (  # noqa: E402
    Destination,
    LocalSourceFile,
    UploadCancelledError,
    UploadError,
    UploadTaskConfig,
    upload_file,
)
from artifact_uploader.utils.config import get_settings  # noqa: E402
from artifact_uploader.utils.config_loader import (  # noqa: E402
    load_task_document,
    task_from_document,
)
from artifact_uploader.utils.logging import get_logger  # noqa: E402

logger = get_logger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Upload one artifact to object storage and print its fingerprint",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload under the file's own name
  %(prog)s dist/app.tar --bucket build-artifacts

  # Gzip in transit to a specific key
  %(prog)s dist/app.tar --bucket build-artifacts --key jobs/42/app.tar --gzip

  # Headers and encryption at rest
  %(prog)s report.txt --bucket docs --metadata Cache-Control=no-cache --sse

  # Task described in a YAML document
  %(prog)s dist/app.tar --task tasks/app.yaml
        """,
    )

    parser.add_argument("file", help="File to upload")
    parser.add_argument("-b", "--bucket", help="Destination bucket")
    parser.add_argument("-k", "--key", help="Object key (default: file name)")
    parser.add_argument(
        "--dest-filename",
        help="File name recorded in the fingerprint (default: object key)",
    )
    parser.add_argument("-z", "--gzip", action="store_true", help="Gzip the payload in transit")
    parser.add_argument("-s", "--storage-class", help="Storage class hint, e.g. STANDARD_IA")
    parser.add_argument("--sse", action="store_true", help="Request server-side encryption")
    parser.add_argument(
        "--existing",
        action="store_true",
        help="Mark the artifact as pre-existing rather than produced by the build",
    )
    parser.add_argument(
        "-m",
        "--metadata",
        action="append",
        help="Metadata key=value pairs (can specify multiple times)",
    )
    parser.add_argument("-t", "--task", help="YAML task document (overrides the options above)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")

    args = parser.parse_args(argv)
    if not args.task and not args.bucket:
        parser.error("--bucket is required unless --task is given")
    return args


def parse_metadata(metadata_args: List[str]) -> Dict[str, str]:
    """Parse metadata arguments into dictionary."""
    metadata = {}
    for item in metadata_args:
        if "=" not in item:
            logger.warning(f"Invalid metadata format (use key=value): {item}")
            continue

        key, value = item.split("=", 1)
        metadata[key.strip()] = value.strip()

    return metadata


def build_task(args, settings) -> UploadTaskConfig:
    if args.task:
        return task_from_document(load_task_document(args.task), settings)

    key = args.key or Path(args.file).name
    return UploadTaskConfig(
        produced=not args.existing,
        dest_filename=args.dest_filename or key,
        bucket_name=args.bucket,
        destination=Destination(args.bucket, key),
        user_metadata=parse_metadata(args.metadata or []),
        storage_class=args.storage_class,
        use_server_side_encryption=args.sse,
        gzip_files=args.gzip,
        credentials=settings.credentials(),
        region=settings.region,
        proxy=settings.proxy(),
    )


def main(argv=None):
    """Main entry point for upload CLI."""
    args = parse_args(argv)

    if args.verbose:
        logging.getLogger("artifact_uploader").setLevel(logging.DEBUG)

    try:
        settings = get_settings()
        task = build_task(args, settings)
    except (ValueError, FileNotFoundError) as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return 1

    print(f"📤 Uploading {args.file} to {task.destination}", file=sys.stderr)

    try:
        record = upload_file(LocalSourceFile(args.file), task, spill_dir=settings.spill_dir)
    except UploadCancelledError:
        print("\n⚠️  Upload cancelled by user", file=sys.stderr)
        return 130
    except UploadError as e:
        print(f"❌ Upload failed: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n⚠️  Upload cancelled by user", file=sys.stderr)
        return 130

    print(json.dumps(record.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
