# path: src/runtime/agent_runtime_main.py

"""
Unified runtime entrypoint for the agent body.

This script shows:
- How the EventBus, JsonFileLogger, AgentRuntime and TUI Dashboard fit together.
- Where events flow and how logs are produced.

Usage:
    agent-runtime --config config/agent.yaml --data-dir data --tui
    python -m runtime.agent_runtime_main

The body comes from bot_core.runtime.get_embodiment(), which currently
returns the in-process SimulatedEmbodiment.
"""

from __future__ import annotations  # allow forward type references in type hints

import argparse                     # CLI flag parsing
import asyncio                      # the agent core runs on one event loop
import logging
import threading                    # for running the TUI dashboard in a background thread
from pathlib import Path            # for filesystem path handling
from typing import List, Optional, Tuple

from agent.logging_config import configure_logging
from agent.runtime import AgentRuntime
from bot_core.runtime import get_embodiment
from env.loader import load_config
from monitoring.bus import EventBus         # central in-process event bus type
from monitoring.dashboard_tui import StateProvider, TuiDashboard  # terminal HUD fed by the bus
from monitoring.logger import JsonFileLogger  # JSONL history of every Event

log = logging.getLogger(__name__)


def start_tui_in_background(
    bus: EventBus,
    state_provider: Optional[StateProvider] = None,
) -> Tuple[threading.Thread, threading.Event]:
    """
    Start the TuiDashboard in a separate daemon thread.

    The dashboard listens to Events on the given bus and renders a live HUD.
    Running it in a background thread avoids blocking the asyncio loop.
    Returns the thread and the flag that stops it.
    """
    dashboard = TuiDashboard(bus, state_provider=state_provider)
    stop = threading.Event()

    def _run() -> None:
        # 4 FPS is plenty for monitoring purposes
        dashboard.run(refresh_per_second=4.0, stop=stop)

    t = threading.Thread(
        target=_run,
        name="TuiDashboardThread",   # helpful name for debugging / profiling
    )
    # Mark the thread as daemon so it won't block process exit
    t.daemon = True
    t.start()
    return t, stop


def build_monitoring_stack(log_path: Path) -> Tuple[EventBus, JsonFileLogger]:
    """
    Construct the monitoring stack used by the runtime.

    Responsibilities:
    - Create the EventBus the Event Log publishes to.
    - Attach a JsonFileLogger that writes every Event as JSONL.

    Returns:
        (bus, logger)
    """
    bus = EventBus()
    logger = JsonFileLogger(
        path=log_path,  # file where Events will be appended as JSONL
        bus=bus,        # EventBus instance to subscribe to
    )
    return bus, logger


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-runtime",
        description="Run the agent body: reflexes, combat and the file-based command channel.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to agent.yaml")
    parser.add_argument("--data-dir", default=None, help="Directory for events/state/commands/manifest files")
    parser.add_argument("--log-level", default="INFO", help="Diagnostic log level (DEBUG, INFO, ...)")
    parser.add_argument("--tui", action="store_true", help="Show the live terminal dashboard")
    return parser


def run_agent_runtime(argv: Optional[List[str]] = None) -> int:
    """
    Main entrypoint.

    Runtime responsibilities:
    - Load configuration and configure logging.
    - Build the monitoring stack (EventBus + JsonFileLogger).
    - Build AgentRuntime around the body.
    - Optionally start the TUI dashboard in the background.
    - Run until Ctrl+C, disconnect or kick.

    Returns the process exit code: non-zero after a disconnect/kick so an
    external supervisor restarts the body.
    """
    args = build_arg_parser().parse_args(argv)
    configure_logging(args.log_level)

    config = load_config(args.config)
    if args.data_dir:
        config.paths.data_dir = args.data_dir

    bus, logger = build_monitoring_stack(config.paths.history_file)

    body = get_embodiment()
    runtime = AgentRuntime(body, config, bus=bus, pump=body.advance)

    tui_stop: Optional[threading.Event] = None
    if args.tui:
        _, tui_stop = start_tui_in_background(bus, state_provider=lambda: runtime.snapshots.last)

    reason: Optional[str] = None
    try:
        reason = asyncio.run(runtime.run())
    except KeyboardInterrupt:
        # Handle Ctrl+C for graceful shutdown in a dev environment
        log.info("Shutting down agent runtime...")
    finally:
        if tui_stop is not None:
            tui_stop.set()
        # Close the JSONL logger so buffered events are flushed to disk
        logger.close()

    if reason is not None:
        log.warning("Agent runtime exited: %s", reason)
        return 1
    return 0


def main() -> None:
    raise SystemExit(run_agent_runtime())


if __name__ == "__main__":
    # python -m runtime.agent_runtime_main
    main()
