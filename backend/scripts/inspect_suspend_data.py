"""Decode a stored progress document and report its size at each reduction level."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from progress_engine.codec import decode
from progress_engine.logging_config import configure_logging
from progress_engine.reduction import REDUCTION_CHAIN, encode_state
from progress_engine.scorm.adapter import SCORM12_SUSPEND_LIMIT, SCORM2004_SUSPEND_LIMIT
from progress_engine.serialization import StateDocumentError, parse_document

LOGGER = logging.getLogger("progress_engine.inspect")

LIMITS = {"1.2": SCORM12_SUSPEND_LIMIT, "2004": SCORM2004_SUSPEND_LIMIT}


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect a suspend-data blob or local storage document.")
    parser.add_argument(
        "source",
        nargs="?",
        help="Path to a file holding the payload (default: read stdin).",
    )
    parser.add_argument(
        "--format",
        choices=("suspend-data", "json"),
        default="suspend-data",
        help="Payload encoding: compressed LMS suspend data or plain local storage JSON.",
    )
    parser.add_argument(
        "--scorm-version",
        choices=sorted(LIMITS),
        default="1.2",
        help="LMS revision whose size limit the report compares against (default: 1.2).",
    )
    return parser.parse_args(argv)


def build_report(raw: str, *, payload_format: str, limit: int) -> Dict[str, Any]:
    text = raw.strip()
    if payload_format == "suspend-data":
        decoded = decode(text)
        if decoded is None:
            raise StateDocumentError("Payload is not valid suspend data.")
        text = decoded
    state = parse_document(text)
    levels = []
    for level in REDUCTION_CHAIN:
        size = len(encode_state(level.project(state)))
        levels.append({"level": level.name, "size": size, "fits": size <= limit})
    return {
        "state_version": state.state_version,
        "timestamp": state.timestamp,
        "reduction_level": state.reduction_level,
        "attempts": len(state.mcq_attempts),
        "badges": len(state.badges),
        "limit": limit,
        "levels": levels,
    }


def main(argv: Optional[list[str]] = None) -> int:
    configure_logging()
    args = parse_args(argv)
    try:
        raw = Path(args.source).read_text(encoding="utf-8") if args.source else sys.stdin.read()
        report = build_report(raw, payload_format=args.format, limit=LIMITS[args.scorm_version])
    except (OSError, StateDocumentError) as exc:
        LOGGER.error("Failed to inspect payload: %s", exc)
        return 1
    print(json.dumps(report, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
