import argparse
import logging
import signal
import sys
import threading
from typing import Optional, Sequence, Tuple, Union

from packages.shared.config import AppConfig, Resolution
from packages.shared.paths import ensure_app_dirs
from packages.shared.store import ConfigStore
from packages.core.logging_ import setup_logging
from packages.core.display.controller import NircmdDisplayController, ResolutionSwitcher
from packages.core.display.notifier import LoggingUiNotifier
from packages.core.display.resolutions import ResolutionConfig
from packages.core.monitor.cpu_meter import PsutilCpuMeter, cpu_core_count
from packages.core.monitor.process_detector import PsutilProcessLister
from packages.core.monitor.sampler import Sampler
from packages.core.monitor.scheduler import TaskScheduler
from packages.core.monitor.state_machine import MatchStateMachine

log = logging.getLogger(__name__)


def build_monitor(cfg: AppConfig) -> Tuple[MatchStateMachine, TaskScheduler]:
    scheduler = TaskScheduler()
    sampler = Sampler(PsutilProcessLister(), PsutilCpuMeter(), core_count=cpu_core_count(), clock=scheduler.now)
    switcher = ResolutionSwitcher(
        NircmdDisplayController(cfg.nircmd_path),
        attempts=cfg.apply_retries,
        backoff_seconds=cfg.apply_backoff_ms / 1000.0,
    )
    monitor = MatchStateMachine(
        cfg.to_monitor_config(),
        sampler=sampler,
        switcher=switcher,
        scheduler=scheduler,
        notifier=LoggingUiNotifier(),
        resolutions=ResolutionConfig(cfg.game_resolution, cfg.desktop_resolution),
    )
    return monitor, scheduler


def _apply_target(text: str) -> Union[str, Resolution]:
    if text in ("game", "desktop"):
        return text
    try:
        return Resolution.parse(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected 'game', 'desktop' or WIDTHxHEIGHT, got {text!r}") from e


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="match-resolution", description="Switch display resolution when a match starts and ends.")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every sample")
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="monitor the game (default)")
    run.add_argument("--game", type=Resolution.parse, help="in-match resolution, e.g. 1440x1080")
    run.add_argument("--desktop", type=Resolution.parse, help="desktop resolution, e.g. 1920x1080")

    apply = sub.add_parser("apply", help="set a resolution once and exit")
    apply.add_argument("target", type=_apply_target, help="'game', 'desktop' or WIDTHxHEIGHT")
    return parser.parse_args(argv)


def _run(store: ConfigStore, cfg: AppConfig, args: argparse.Namespace) -> int:
    game = getattr(args, "game", None)
    desktop = getattr(args, "desktop", None)
    if game is not None or desktop is not None:
        cfg = cfg.model_copy(update={
            "game_resolution": game or cfg.game_resolution,
            "desktop_resolution": desktop or cfg.desktop_resolution,
        })
        store.save(cfg)

    monitor, scheduler = build_monitor(cfg)
    stop_evt = threading.Event()

    def signal_handler(sig, frame):
        log.info("Received interrupt signal (Ctrl+C), shutting down...")
        stop_evt.set()

    if hasattr(signal, 'SIGINT'):
        signal.signal(signal.SIGINT, signal_handler)

    scheduler.start()
    monitor.start(cfg.game_resolution, cfg.desktop_resolution)
    try:
        while not stop_evt.wait(0.5):
            pass
    finally:
        monitor.stop()
        scheduler.shutdown()
    return 0


def _apply_once(cfg: AppConfig, target: Union[str, Resolution]) -> int:
    if target == "game":
        resolution = cfg.game_resolution
    elif target == "desktop":
        resolution = cfg.desktop_resolution
    else:
        resolution = target
    monitor, _ = build_monitor(cfg)
    return 0 if monitor.set_resolution_now(resolution.width, resolution.height) else 1


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    ensure_app_dirs()
    setup_logging(verbose=args.verbose)

    store = ConfigStore()
    cfg = store.load()
    log.info(f"Loaded config from {store.path()}")

    if args.command == "apply":
        sys.exit(_apply_once(cfg, args.target))
    sys.exit(_run(store, cfg, args))


if __name__ == "__main__":
    main()
