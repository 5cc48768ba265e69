"""Application entrypoint — start the API server or replay recorded readings."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import TextIO

import uvicorn

from emotion_fusion.config import get_settings
from emotion_fusion.exceptions import InvalidReadingError
from emotion_fusion.fusion.engine import EmotionFusionEngine
from emotion_fusion.logger import setup_logging
from emotion_fusion.models import FusionMethod


class ReplayClock:
    """Clock that follows the timestamps of replayed records."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime.now(UTC)

    def __call__(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        self._now = value


def replay(
    path: Path,
    *,
    method: FusionMethod | None = None,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> int:
    """Feed a JSON-lines file through a fresh engine.

    Each line holds ``source``, ``category`` (or ``emotion``),
    ``confidence`` and optionally an ISO ``timestamp``.  One JSON estimate
    is written per accepted line, followed by a summary object.  Returns
    the process exit status.
    """
    out = out or sys.stdout
    err = err or sys.stderr
    clock = ReplayClock()
    engine = EmotionFusionEngine(get_settings(), clock=clock)
    if method is not None:
        engine.set_fusion_method(method)

    updates = rejected = 0
    with path.open(encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
                if "timestamp" in record:
                    clock.set(datetime.fromisoformat(record["timestamp"]))
                estimate = engine.update_source(record["source"], record)
            except (ValueError, KeyError, TypeError) as exc:
                # InvalidReadingError and JSONDecodeError are both ValueErrors.
                reason = exc.reason if isinstance(exc, InvalidReadingError) else repr(exc)
                print(f"line {lineno}: rejected: {reason}", file=err)
                rejected += 1
                continue
            updates += 1
            print(estimate.model_dump_json(), file=out)

    summary = {
        "updates": updates,
        "rejected": rejected,
        "method": engine.fusion_method.value,
        "conflicts": len(engine.get_conflicts(None)),
        "final": engine.get_fused_emotion().model_dump(mode="json"),
    }
    print(json.dumps(summary), file=out)
    return 1 if rejected else 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="emotion-fusion",
        description="Multi-source emotion-state fusion engine.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── serve ─────────────────────────────────────────────────
    serve_parser = sub.add_parser("serve", help="Start the API server.")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")

    # ── replay ────────────────────────────────────────────────
    replay_parser = sub.add_parser("replay", help="Fuse a JSON-lines file of readings.")
    replay_parser.add_argument("file", type=Path)
    replay_parser.add_argument(
        "--method",
        choices=[m.value for m in FusionMethod if m is not FusionMethod.FALLBACK],
        default=None,
    )

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    if args.command == "serve":
        uvicorn.run(
            "emotion_fusion.api.server:app",
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
            reload=args.reload,
        )
    elif args.command == "replay":
        method = FusionMethod(args.method) if args.method else None
        sys.exit(replay(args.file, method=method))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
