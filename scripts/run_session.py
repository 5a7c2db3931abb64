#!/usr/bin/env python3
"""
Run a guided HappyFace capture session.

The session walks through:
1. A 5s baseline with a still, relaxed face
2. A reset check, then a 5s smile task
3. A reset check, then a 5s frown task
4. Biomarker computation and upload of the record

Usage:
    python scripts/run_session.py --name Ada --age 36
    python scripts/run_session.py --name Ada --age 36 --store http --endpoint https://example.org/records
    python scripts/run_session.py --name Ada --age 36 --fallback-video face.mp4 --no-preview
"""

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from loguru import logger

from happyface.errors import AcquisitionError, InvalidSubjectError
from happyface.metrics import radar_scores
from happyface.pipeline import CaptureSession, SessionConfig, UploadStatus
from happyface.vision import AnalyzerConfig, CaptureConfig


def setup_logger(verbose: bool = False):
    """Configure logging."""
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=level,
    )


def main():
    parser = argparse.ArgumentParser(
        description="Guided facial expression biomarker capture",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Local session:     python scripts/run_session.py --name Ada --age 36
  Upload over HTTP:  python scripts/run_session.py --name Ada --age 36 --store http --endpoint URL
  Test video:        python scripts/run_session.py --name Ada --age 36 --fallback-video face.mp4
        """
    )

    parser.add_argument("--name", required=True, help="Subject name")
    parser.add_argument("--age", required=True, help="Subject age (1-120)")

    parser.add_argument("--camera", type=int, default=0, help="Camera device index")
    parser.add_argument("--fallback-video", type=str, default=None,
                        help="Video file used when no camera is available")
    parser.add_argument("--model", type=str, default="models/face_landmarker.task",
                        help="Face landmarker model path (downloaded if missing)")

    parser.add_argument("--store", choices=["jsonl", "http", "none"], default="jsonl",
                        help="Where to save the record")
    parser.add_argument("--records", type=str, default="data/emotion_records.jsonl",
                        help="Output file for --store jsonl")
    parser.add_argument("--endpoint", type=str, default=None, help="Upload URL for --store http")
    parser.add_argument("--api-key", type=str, default=None, help="Bearer token for --store http")

    parser.add_argument("--no-preview", action="store_true", help="Run without the preview window")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()
    setup_logger(args.verbose)

    config = SessionConfig(
        capture=CaptureConfig(device_id=args.camera, fallback_video=args.fallback_video),
        analyzer=AnalyzerConfig(model_path=args.model),
        store=args.store,
        records_path=args.records,
        upload_endpoint=args.endpoint,
        upload_api_key=args.api_key,
        show_preview=not args.no_preview,
    )

    logger.info("=" * 60)
    logger.info("HappyFace Biomarker Capture")
    logger.info("=" * 60)
    logger.info("Follow the on-screen instructions. Press Q to abort.")

    try:
        with CaptureSession(config) as session:
            outcome = session.run(args.name, args.age)
    except InvalidSubjectError as e:
        logger.error(f"Invalid subject: {e}")
        return 2
    except AcquisitionError as e:
        logger.error(f"Could not start capture: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("\nInterrupted by user")
        return 0

    if outcome is None:
        logger.info("Session aborted")
        return 0

    record = outcome.record
    logger.info("\n" + "=" * 60)
    logger.info(f"Result: {record.summary}")
    logger.info("=" * 60)
    logger.info(f"Static stability: {record.baseline_stability * 100:.1f}%")
    logger.info(
        f"Smile: {record.smile_metrics.peak_intensity * 100:.1f}%, "
        f"latency {record.smile_metrics.latency_ms}ms, "
        f"symmetry {record.smile_metrics.symmetry * 100:.1f}%"
    )
    logger.info(
        f"Frown: {record.frown_metrics.peak_intensity * 100:.1f}%, "
        f"latency {record.frown_metrics.latency_ms}ms"
    )
    logger.info(f"Blink rate: {record.blink_rate:.1f}/min")
    logger.debug(f"Radar scores: {json.dumps(radar_scores(record))}")

    if outcome.upload_status == UploadStatus.SAVED:
        logger.info(f"Record saved (id: {outcome.record_id})")
    elif outcome.upload_status == UploadStatus.FAILED:
        logger.error(f"Upload failed: {outcome.error}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
