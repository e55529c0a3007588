"""
Match detection state machine driving display resolution changes.

State machine: LEARNING -> ARMED -> IN_MATCH -> CONFIRMING_END -> ARMED

Every tick samples the target processes, learns an idle CPU baseline first,
then judges "in match" from CPU load above the learned threshold. Entering a
match switches to the game resolution after a delayed re-check; leaving one
restores the desktop resolution only after a majority of delayed checks agree.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from packages.core.display.controller import ResolutionSwitcher
from packages.core.display.notifier import LoggingUiNotifier, UiNotifier
from packages.core.display.resolutions import ResolutionConfig
from packages.shared.config import AppConfig, Resolution

from .baseline import BaselineLearner
from .sampler import Sampler, fallback_cpu_percent
from .scheduler import ScheduledTask, TaskScheduler
from .stability import StabilityFilter
from .types import ActionFailure, DataUnavailable, MatchState, MonitorSnapshot, MonitorStatus, TargetSample

log = logging.getLogger(__name__)


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime())


@dataclass
class MonitorConfig:
    """Timing and debounce settings for the state machine."""
    sample_interval_ms: int
    baseline_readings: int
    stability_checks: int
    start_delay_ms: int
    end_delay_ms: int
    end_check_count: int
    end_check_interval_ms: int
    end_check_tolerance: float  # multiplier on the threshold during end checks


@dataclass
class _EndVotes:
    total: int
    done: int = 0
    out: int = 0

    def record(self, out_of_match: bool) -> None:
        self.done += 1
        if out_of_match:
            self.out += 1

    @property
    def confirmed_out(self) -> bool:
        return self.out * 2 > self.total


class MatchStateMachine:
    """
    Owns one monitoring session. Ticks and delayed checks run on the
    scheduler's worker; commands may come from any thread. All of them
    serialize on one lock.
    """

    def __init__(
        self,
        config: dict,
        sampler: Sampler,
        switcher: ResolutionSwitcher,
        scheduler: TaskScheduler,
        notifier: Optional[UiNotifier] = None,
        resolutions: Optional[ResolutionConfig] = None,
    ) -> None:
        self._cfg = self._parse_config(config)
        self._sampler = sampler
        self._switcher = switcher
        self._scheduler = scheduler
        self._notifier: UiNotifier = notifier or LoggingUiNotifier()
        if resolutions is None:
            defaults = AppConfig()
            resolutions = ResolutionConfig(defaults.game_resolution, defaults.desktop_resolution)
        self._resolutions = resolutions
        self._lock = threading.RLock()

        self._status: MonitorStatus = "STOPPED"
        self._generation = 0
        self._state: MatchState = "LEARNING"
        self._learner = BaselineLearner(self._cfg.baseline_readings)
        self._filter = StabilityFilter(self._cfg.stability_checks)
        self._resolution_switched = False
        self._match_started_at: Optional[float] = None
        self._match_ended_at: Optional[float] = None
        self._last_cpu_percent: Optional[float] = None
        self._last_status: Optional[str] = None
        self._end_votes: Optional[_EndVotes] = None

        self._tick_task: Optional[ScheduledTask] = None
        self._pending: List[ScheduledTask] = []

    @staticmethod
    def _parse_config(config: dict) -> MonitorConfig:
        """Parse config dict into MonitorConfig."""
        return MonitorConfig(
            sample_interval_ms=config.get("sample_interval_ms", 3000),
            baseline_readings=config.get("baseline_readings", 3),
            stability_checks=config.get("stability_checks", 3),
            start_delay_ms=config.get("start_delay_ms", 5000),
            end_delay_ms=config.get("end_delay_ms", 5000),
            end_check_count=config.get("end_check_count", 3),
            end_check_interval_ms=config.get("end_check_interval_ms", 2000),
            end_check_tolerance=config.get("end_check_tolerance", 1.1),
        )

    @property
    def resolutions(self) -> ResolutionConfig:
        return self._resolutions

    def get_state(self) -> MonitorSnapshot:
        with self._lock:
            return MonitorSnapshot(
                status=self._status,
                match_state=self._state,
                baseline=self._learner.baseline,
                threshold=self._learner.threshold,
                readings_collected=len(self._learner.readings),
                confirmed_in_match=self._filter.confirmed,
                resolution_switched=self._resolution_switched,
                match_started_at=self._match_started_at,
                match_ended_at=self._match_ended_at,
                last_cpu_percent=self._last_cpu_percent,
            )

    # Commands

    def start(self, game: Resolution, desktop: Resolution) -> None:
        with self._lock:
            if self._status == "RUNNING":
                log.info("Monitoring already running, replacing the previous session")
                self._halt()
            self._resolutions.update(game, desktop)
            self._reset_session()
            self._status = "RUNNING"
            self._generation += 1
            gen = self._generation
            self._tick_task = self._scheduler.call_every(
                self._cfg.sample_interval_ms / 1000.0, lambda: self._tick(gen), name="match-tick"
            )
            log.info(
                f"Monitoring started: game {game}, desktop {desktop}, "
                f"start delay {self._cfg.start_delay_ms / 1000:.0f}s, end delay {self._cfg.end_delay_ms / 1000:.0f}s, "
                f"{self._cfg.baseline_readings} baseline readings, {self._cfg.stability_checks} stability checks"
            )
            self._notify("Monitoring started - Looking for the game...")

    def stop(self) -> None:
        with self._lock:
            if self._status != "RUNNING":
                return
            self._halt()
            self._status = "STOPPED"
            self._reset_session()
            log.info("Monitoring stopped")
            self._notify("Monitoring stopped")

    def update_resolutions(self, game: Resolution, desktop: Resolution) -> None:
        old_game, old_desktop = self._resolutions.update(game, desktop)
        log.info(f"Resolutions updated: game {old_game} -> {game}, desktop {old_desktop} -> {desktop}")
        with self._lock:
            self._announce(f"Resolution settings updated: Game {game}, Desktop {desktop}")

    def set_resolution_now(self, width: int, height: int) -> bool:
        """Apply a resolution immediately, outside the state machine."""
        resolution = Resolution(width=width, height=height)
        try:
            self._switcher.apply(resolution)
        except ActionFailure as e:
            log.error(f"Manual resolution change to {resolution} failed: {e}")
            with self._lock:
                self._announce(f"Could not apply resolution {resolution}: {e}")
            return False
        with self._lock:
            self._announce(f"Resolution applied: {resolution}")
        return True

    # Session bookkeeping

    def _reset_session(self) -> None:
        self._state = "LEARNING"
        self._learner = BaselineLearner(self._cfg.baseline_readings)
        self._filter = StabilityFilter(self._cfg.stability_checks)
        self._sampler.reset()
        self._match_started_at = None
        self._match_ended_at = None
        self._last_cpu_percent = None
        self._last_status = None
        self._end_votes = None

    def _halt(self) -> None:
        self._generation += 1
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None
        self._cancel_pending()
        if self._resolution_switched:
            log.info("Stopping monitoring, restoring desktop resolution")
            self._resolution_switched = False
            self._apply(self._resolutions.desktop)

    def _defer(self, delay_ms: int, fn: Callable[[], None], name: str) -> None:
        self._pending = [t for t in self._pending if not (t.done or t.cancelled)]
        self._pending.append(self._scheduler.call_later(delay_ms / 1000.0, fn, name=name))

    def _cancel_pending(self) -> None:
        for task in self._pending:
            task.cancel()
        self._pending = []

    def _transition(self, new_state: MatchState) -> None:
        if new_state != self._state:
            log.info(f"Match state {self._state} -> {new_state}")
            self._state = new_state

    def _notify(self, status: str) -> None:
        if status == self._last_status:
            return
        self._announce(status)

    def _announce(self, status: str) -> None:
        # commands always report, even when the text repeats
        self._last_status = status
        self._notifier.notify(status)

    def _apply(self, resolution: Resolution) -> bool:
        try:
            self._switcher.apply(resolution)
            return True
        except ActionFailure as e:
            log.error(f"Resolution change to {resolution} failed at {_now_iso()} (state={self._state}): {e}")
            self._notify(f"Resolution change error: {e}")
            return False

    # Periodic tick

    def _tick(self, gen: int) -> None:
        with self._lock:
            if gen != self._generation:
                return
            try:
                sample = self._sampler.sample()
            except DataUnavailable as e:
                log.warning(f"Tick at {_now_iso()} skipped: {e.source} unavailable ({e.reason}), state={self._state}")
                return

            if not sample.app_running:
                self._on_app_absent(sample.timestamp)
                return

            reading = sample.cpu_percent
            if reading is None:
                reading = fallback_cpu_percent(sample.role)
                log.info(f"Using fallback CPU value {reading:.1f}% for {sample.role} process (state={self._state})")
            self._last_cpu_percent = reading

            if self._state == "LEARNING":
                self._learn(reading, sample)
                return
            self._judge(reading, sample)

    def _learn(self, reading: float, sample: TargetSample) -> None:
        if not self._learner.add(reading, sample.role):
            collected = len(self._learner.readings)
            required = self._learner.required_readings
            if reading > 0:
                self._notify(f"Learning baseline... ({collected}/{required}) - Current: {reading:.1f}%")
            else:
                self._notify(f"Waiting for valid CPU data... ({collected}/{required})")
            return
        self._transition("ARMED")
        self._notify(f"Baseline completed! Threshold: {self._learner.threshold}% - Ready to detect matches")

    def _judge(self, reading: float, sample: TargetSample) -> None:
        now = sample.timestamp
        threshold = self._learner.threshold
        if sample.in_session is None:
            self._filter.force(False)
            if self._state == "ARMED":
                self._notify("Ready to detect matches - Enter a match")
        else:
            raw = reading > threshold
            changed = self._filter.update(raw)
            log.debug(f"CPU {reading:.1f}% vs threshold {threshold}% -> {'MATCH' if raw else 'MENU'}, window {self._filter.window}")
            if changed is not None:
                log.info(f"Stable state confirmed: {'MATCH' if changed else 'MENU'} ({self._cfg.stability_checks} consecutive readings)")

        in_match = self._filter.confirmed is True
        if in_match and self._state == "ARMED":
            self._enter_match(now)
        elif not in_match and self._state == "IN_MATCH":
            self._begin_end_confirmation(now)

    def _on_app_absent(self, now: float) -> None:
        if not self._resolution_switched:
            self._filter.force(False)
            if self._state == "IN_MATCH":
                # closed before the game resolution was applied: let the end checks re-arm
                self._begin_end_confirmation(now)
            elif self._state != "CONFIRMING_END":
                self._notify("Game not running - Start the game and wait in menu")
            return
        log.warning(f"Game closed at {_now_iso()} while game resolution active (state={self._state}), restoring immediately")
        self._cancel_pending()
        self._end_votes = None
        self._filter.force(False)
        self._resolution_switched = False
        desktop = self._resolutions.desktop
        restored = self._apply(desktop)
        self._match_started_at = None
        self._match_ended_at = None
        self._transition("ARMED" if self._learner.calibrated else "LEARNING")
        self._notifier.show()
        if restored:
            self._notify(f"Game closed! Resolution restored to {desktop}")

    # Match start

    def _enter_match(self, now: float) -> None:
        self._match_started_at = now
        self._match_ended_at = None
        self._transition("IN_MATCH")
        self._notifier.hide()
        self._notify(f"Match started! Resolution will change in {self._cfg.start_delay_ms / 1000:.0f} seconds...")
        gen = self._generation
        self._defer(self._cfg.start_delay_ms, lambda: self._confirm_start(gen), "match-start-recheck")

    def _confirm_start(self, gen: int) -> None:
        with self._lock:
            if gen != self._generation:
                return
            if self._state not in ("IN_MATCH", "CONFIRMING_END"):
                log.info(f"Start re-check skipped, state is {self._state}")
                return
            try:
                _, in_session = self._sampler.locate()
            except DataUnavailable as e:
                log.warning(f"Start re-check at {_now_iso()} failed: {e.source} unavailable ({e.reason}), resolution not changed")
                return
            if in_session is None:
                log.info("Match process closed within the start delay, resolution not changed")
                self._notifier.show()
                self._notify("Match process closed - Resolution not changed")
                return

            game = self._resolutions.game
            self._resolution_switched = True
            if self._apply(game):
                self._notify(f"In Match - Resolution changed to {game}")

    # Match end

    def _begin_end_confirmation(self, now: float) -> None:
        self._match_ended_at = now
        self._transition("CONFIRMING_END")
        self._notify(f"Match ended! Resolution will be restored in {self._cfg.end_delay_ms / 1000:.0f} seconds...")
        self._end_votes = _EndVotes(total=self._cfg.end_check_count)
        gen = self._generation
        self._defer(self._cfg.end_delay_ms, lambda: self._end_check(gen), "match-end-check-1")

    def _still_out_of_match(self) -> bool:
        try:
            present, percent = self._sampler.probe_in_session()
        except DataUnavailable as e:
            log.info(f"End check: {e.source} unavailable ({e.reason}) - assuming out of match")
            return True
        if not present:
            log.info("End check: match process not found - out of match")
            return True
        if percent is None:
            log.info("End check: no fresh CPU data - assuming out of match")
            return True
        limit = (self._learner.threshold or 0) * self._cfg.end_check_tolerance
        log.info(f"End check: CPU {percent:.1f}% vs relaxed threshold {limit:.1f}% -> {'OUT' if percent <= limit else 'IN'}")
        return percent <= limit

    def _end_check(self, gen: int) -> None:
        with self._lock:
            votes = self._end_votes
            if gen != self._generation or self._state != "CONFIRMING_END" or votes is None:
                return
            votes.record(self._still_out_of_match())
            if votes.done < votes.total:
                self._defer(self._cfg.end_check_interval_ms, lambda: self._end_check(gen), f"match-end-check-{votes.done + 1}")
                return

            self._end_votes = None
            log.info(f"Match end confirmation: {votes.out}/{votes.total} checks confirm out of match")
            if votes.confirmed_out:
                self._finish_match()
            else:
                self._match_ended_at = None
                self._transition("IN_MATCH")
                self._notify("Still in match - Resolution kept")

    def _finish_match(self) -> None:
        desktop = self._resolutions.desktop
        restored = False
        if self._resolution_switched:
            self._resolution_switched = False
            restored = self._apply(desktop)
        self._match_started_at = None
        self._match_ended_at = None
        self._transition("ARMED")
        self._notifier.show()
        if restored:
            self._notify(f"MATCH ENDED! Resolution restored to {desktop}")
        else:
            self._notify("Match ended - Ready for new match")
