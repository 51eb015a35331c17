"""Entry point for running the crowd-safety pipeline.

This script builds one pipeline per configured source, ticks each of them
in its own thread at the source's interval, and prints one JSON line per
processed frame. Every source owns its tracker state, so foreground and
background views of the same feed never interfere.

Usage
-----
```bash
python run_pipeline.py --config configs/default.yaml --duration 30
```
"""

from __future__ import annotations

import argparse
import json
import sys
import threading
import time
from typing import List

from monitoring import MetricsExporter
from pipeline import CrowdSafetyPipeline, FrameResult, SourceWorker, load_settings


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the crowd-safety pipeline.")
    parser.add_argument("--config", type=str, required=True, help="Path to configuration file.")
    parser.add_argument("--duration", type=float, default=None, help="Stop after this many seconds.")
    parser.add_argument("--max-frames", type=int, default=None, help="Stop each source after this many frames.")
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port (overrides config).",
    )
    parser.add_argument("--quiet", action="store_true", help="Do not print per-frame JSON lines.")
    args = parser.parse_args()

    settings = load_settings(args.config)

    metrics_port = args.metrics_port if args.metrics_port is not None else settings.metrics_port
    exporter: MetricsExporter | None = None
    if settings.metrics_enabled or metrics_port is not None:
        exporter = MetricsExporter(port=metrics_port or 9095)

    print_lock = threading.Lock()

    def emit(result: FrameResult) -> None:
        if args.quiet:
            return
        line = json.dumps(result.to_dict())
        with print_lock:
            print(line, flush=True)

    workers: List[SourceWorker] = []
    for source in settings.sources:
        pipeline = CrowdSafetyPipeline.from_source(settings, source, exporter=exporter)
        worker = SourceWorker(pipeline, source.interval, on_result=emit, max_frames=args.max_frames)
        worker.start()
        workers.append(worker)

    deadline = time.monotonic() + args.duration if args.duration is not None else None
    try:
        while any(w.is_alive() for w in workers):
            if deadline is not None and time.monotonic() >= deadline:
                break
            time.sleep(0.1)
    except KeyboardInterrupt:
        pass
    finally:
        for w in workers:
            w.stop()
        for w in workers:
            w.join()

    for w in workers:
        print(
            f"[{w.pipeline.source_id}] frames={w.pipeline.frame_index} "
            f"skipped={w.pipeline.skipped} missed_ticks={w.missed_ticks}",
            file=sys.stderr,
        )


if __name__ == "__main__":
    main()
