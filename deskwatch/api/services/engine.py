from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from collections.abc import AsyncGenerator
from dataclasses import asdict
from datetime import tzinfo
from pathlib import Path
from typing import Any

from deskwatch.core.analytics.insights import Insight
from deskwatch.core.analytics.pipeline import DeskDetector, MonitorPipeline
from deskwatch.core.config.settings import MonitorSettings, tunables_from_settings
from deskwatch.core.detectors.yolo import YoloDeskDetector
from deskwatch.core.storage import ProductivityStore
from deskwatch.core.timeutil import Clock, SystemClock, day_of, day_start_ms, to_datetime
from deskwatch.core.types import Association, Frame, FrameResult, Status
from deskwatch.core.video_sources.base import FileSource, RTSPSource, VideoSource, WebcamSource

logger = logging.getLogger(__name__)


class MonitorEngine:
    """Runs the capture -> detect -> account loop.

    Frames are processed strictly one at a time on an asyncio loop owned by a
    background thread. The detector call is the only long suspension point;
    the next frame is read only after the current one is fully accounted, so a
    slow detector lowers the frame rate instead of queueing work.

    A separate task saves the day's snapshot every `autosave_interval_s`.
    Before each frame the engine checks the local date; on a new day it closes
    the finished day at midnight, saves it and resets the session.
    """

    def __init__(
        self,
        settings: MonitorSettings,
        detector: DeskDetector | None = None,
        store: ProductivityStore | None = None,
        clock: Clock | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self.settings = settings
        self.clock: Clock = clock or SystemClock()
        self.tz = tz
        if detector is None:
            detector = YoloDeskDetector(settings.model_name, settings.detector_confidence)
        self.store = store if store is not None else ProductivityStore(settings.data_dir)

        tunables = tunables_from_settings(settings)
        self.pipeline = MonitorPipeline(
            detector=detector,
            clock=self.clock,
            tz=tz,
            person_confidence=tunables["person_confidence"],
            head_confidence=tunables["head_confidence"],
            head_match_iou=tunables["head_match_iou"],
            status_window=tunables["status_window"],
            enable_alerts=tunables["enable_alerts"],
        )
        self.day = day_of(self.clock.now_ms(), tz)
        self._restore()

        self.source: VideoSource | None = None
        self.running = False
        self.paused = False
        self.last_error: str | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._latest_payload: dict[str, Any] | None = None
        self._last_saved_at: float | None = None
        self._save_lock = threading.RLock()

        self._ledger: dict[str, Any] = self.pipeline.accumulator.ledger_snapshot()
        self._insight: Insight = self.pipeline.insights()
        self._last_status: Status | None = None
        self._status_since: float | None = None
        self.pipeline.add_status_listener(self._on_status)
        self.pipeline.add_metrics_listener(self._on_metrics)

    def _restore(self) -> None:
        stored = self.store.load(self.day)
        if stored is None:
            return
        self.pipeline.restore(stored.snapshot())
        logger.info("Restored stored statistics for %s", self.day)

    def _make_source(self) -> VideoSource:
        """Instantiate the configured `VideoSource`."""

        if self.settings.video_source == "file" and self.settings.video_path:
            video_path = Path(self.settings.video_path)
            if not video_path.exists():
                raise RuntimeError(f"Video path not found: {video_path}")
            return FileSource(str(video_path), loop=True)
        if self.settings.video_source == "rtsp" and self.settings.rtsp_url:
            return RTSPSource(self.settings.rtsp_url)
        return WebcamSource(self.settings.camera_index)

    def start(self) -> None:
        """Start the monitoring thread.

        Safe to call multiple times; subsequent calls while running are ignored.
        """

        if self.running:
            return
        try:
            self.source = self._make_source()
        except Exception:
            self.last_error = "Failed to initialize video source"
            logger.exception(self.last_error)
            return
        self.running = True
        self.last_error = None
        self._thread = threading.Thread(target=self._thread_main, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the loop, save the day's data and end the session."""

        self.running = False
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        self._thread = None
        self.pipeline.close()

    def pause(self) -> None:
        """Stop scheduling frames. State stays as of the last completed frame."""

        self.paused = True
        self.pipeline.log_event("PAUSED", "Monitoring paused")

    def resume(self) -> None:
        self.paused = False
        self.pipeline.log_event("RESUMED", "Monitoring resumed")

    def apply_tunables(self, patch: dict[str, Any]) -> MonitorSettings:
        """Apply live tunables to the running session. Out-of-range values clamp."""

        for name, value in patch.items():
            if value is None:
                continue
            if name in {"person_confidence", "head_confidence", "head_match_iou", "status_window"}:
                setattr(self.pipeline, name, value)
                setattr(self.settings, name, getattr(self.pipeline, name))
            elif name == "enable_alerts":
                self.pipeline.enable_alerts = bool(value)
                self.settings.enable_alerts = bool(value)
            elif name == "autosave":
                self.settings.autosave = bool(value)
        return self.settings

    def _thread_main(self) -> None:
        try:
            asyncio.run(self._run())
        except Exception:
            self.last_error = "Monitoring loop crashed"
            logger.exception(self.last_error)
            self.running = False

    async def _run(self) -> None:
        logger.debug("Monitoring loop started")
        autosave = asyncio.create_task(self._autosave_loop())
        try:
            while self.running:
                if self.paused:
                    await asyncio.sleep(0.05)
                    continue
                start = time.perf_counter()
                frame = await asyncio.to_thread(self.source.read) if self.source else None
                if frame is None:
                    await asyncio.sleep(0.02)
                    continue
                await self.step(frame)

                target_fps = float(self.settings.target_fps or 0.0)
                if target_fps > 0:
                    desired = (1.0 / target_fps) - (time.perf_counter() - start)
                    if desired > 0:
                        await asyncio.sleep(desired)
        finally:
            autosave.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await autosave
            self.save()
            if self.source:
                self.source.close()
            logger.debug("Monitoring loop stopped")

    async def _autosave_loop(self) -> None:
        while True:
            await asyncio.sleep(float(self.settings.autosave_interval_s))
            await asyncio.to_thread(self.save)

    async def step(self, frame: Frame) -> FrameResult | None:
        """Process one frame. Returns None when the detector failed."""

        self.check_rollover()
        result = await self.pipeline.process_frame(frame)
        if result is None:
            self.last_error = self.pipeline.last_error
            return None
        self.last_error = None
        self._publish(result)
        return result

    def check_rollover(self, now_ms: float | None = None) -> bool:
        """Close the finished day at local midnight, save it and start the new one.

        Time up to midnight stays with the finished day; the current status
        carries over, so the first frame of the new day accounts midnight to now.
        """

        now = self.clock.now_ms() if now_ms is None else float(now_ms)
        day = day_of(now, self.tz)
        if day == self.day:
            return False
        finished = self.day
        boundary = day_start_ms(now, self.tz)
        with self._save_lock:
            self.pipeline.close_day(boundary)
            self.save(force=True)
            self.pipeline.reset(boundary, carry_status=True)
            self.day = day
        logger.info("Day rollover %s -> %s; statistics reset", finished, day)
        return True

    def save(self, force: bool = False) -> bool:
        """Persist the current day's snapshot (skipped when autosave is off)."""

        if not (force or self.settings.autosave):
            return False
        with self._save_lock:
            ok = self.store.save(self.day, self.pipeline.export_snapshot())
        if ok:
            self._last_saved_at = self.clock.now_ms()
            logger.debug("Saved statistics for %s", self.day)
        return ok

    def _on_status(self, status: Status, associations: list[Association]) -> None:
        if status is not self._last_status:
            self._last_status = status
            self._status_since = self.clock.now_ms()

    def _on_metrics(self, ledger: dict[str, Any], hourly: dict[str, Any], insight: Insight) -> None:
        with self._lock:
            self._ledger = ledger
            self._insight = insight

    def _publish(self, result: FrameResult) -> None:
        payload = asdict(result)
        with self._lock:
            payload["ledger"] = self._ledger
            payload["insight"] = self._insight.to_dict()
            payload["status_since"] = self._status_since
            payload["recent_productivity"] = self.pipeline.recent_productivity()
            self._latest_payload = payload

    def latest_payload(self) -> dict[str, Any] | None:
        """Return the latest per-frame payload (or `None` before the first frame)."""

        with self._lock:
            return self._latest_payload

    def stats(self) -> dict[str, Any]:
        data = self.pipeline.stats()
        data["paused"] = self.paused
        data["running"] = self.running
        data["day"] = self.day
        data["error"] = self.last_error
        data["last_saved"] = self._last_saved_at
        data["status_since"] = self._status_since
        return data

    def clear_log(self) -> None:
        self.pipeline.clear_log()

    def days(self) -> list[str]:
        """Return every day with data, stored or live, oldest first."""

        return sorted(set(self.store.days()) | {self.day})

    def export_range(self, start: str, end: str) -> dict[str, Any]:
        """Export stored days in `[start, end]` plus a summary over the range.

        The live day, when inside the range, replaces its stored copy. The
        current day's hourly data and session log are included as well.
        """

        if start > end:
            raise ValueError(f"start {start} is after end {end}")
        daily = {day: stored.snapshot() for day, stored in self.store.load_range(start, end).items()}
        current = self.pipeline.export_snapshot()
        if start <= self.day <= end:
            daily[self.day] = current

        working = sum(float(s["ledger"].get("workingTime", 0.0)) for s in daily.values())
        idle = sum(float(s["ledger"].get("idleTime", 0.0)) for s in daily.values())
        total = working + idle
        return {
            "metadata": {
                "exportedAt": to_datetime(self.clock.now_ms(), self.tz).isoformat(),
                "dateRange": {"start": start, "end": end},
                "format": "json",
            },
            "summary": {
                "totalWorkingTime": working,
                "totalIdleTime": idle,
                "overallProductivity": (working / total * 100.0) if total > 0 else 0.0,
                "sessionDuration": self.pipeline.stats()["session_duration"],
            },
            "day": self.day,
            "dailyData": dict(sorted(daily.items())),
            **current,
        }

    async def metadata_stream(self) -> AsyncGenerator[dict[str, Any], None]:
        """Yield per-frame payloads for WebSocket streaming."""

        last_id = -1
        while True:
            payload = self.latest_payload()
            if payload and payload["frame_id"] != last_id:
                last_id = payload["frame_id"]
                yield payload
            await asyncio.sleep(0.02)
