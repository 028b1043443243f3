"""
Workout engine: tracks one step-counter session and turns it into a
finished WorkoutRecord with its reward tuple.

Session states: IDLE -> ACTIVE -> PAUSED -> FINISHED (ACTIVE may finish
directly). A session is single-owner; the orchestrator holds one at a time.
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Tuple

from eggrun.config import settings
from eggrun.core.models import WorkoutRecord, WorkoutSource
from eggrun.errors import WorkoutStateError
from eggrun.infra import log_utils


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_rewards(distance_km: float) -> Tuple[int, int]:
    """
    Reward tuple for a finished workout.

    One egg for any workout of at least REWARD_DISTANCE_KM, and one rare
    candy for each full multiple of it (12 km -> 1 egg, 2 candies).
    """
    if not math.isfinite(distance_km) or distance_km < 0:
        raise ValueError(f"Distance must be a finite non-negative number, got {distance_km}")
    threshold = settings.REWARD_DISTANCE_KM
    eggs = 1 if distance_km >= threshold else 0
    candies = math.floor(distance_km / threshold)
    return eggs, candies


def steps_to_km(steps: int) -> float:
    return steps * settings.METERS_PER_STEP / 1000.0


def build_manual_workout(
    distance_km: float,
    start_time: datetime,
    end_time: Optional[datetime] = None,
) -> WorkoutRecord:
    """Manual-entry flow: no sensor session, no steps."""
    eggs, candies = compute_rewards(distance_km)
    return WorkoutRecord(
        start_time=start_time,
        end_time=end_time or _utcnow(),
        distance_km=distance_km,
        steps=0,
        source=WorkoutSource.MANUAL,
        eggs_earned=eggs,
        candies_earned=candies,
    )


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"
    FINISHED = "finished"


class WorkoutSession:
    """A single tracked activity session fed by cumulative step-counter readings."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self.state = SessionState.IDLE
        self.start_time: Optional[datetime] = None
        self.steps = 0
        self.distance_km = 0.0
        self._baseline = 0
        self._has_baseline = False
        self.record: Optional[WorkoutRecord] = None

    @property
    def is_running(self) -> bool:
        return self.state in (SessionState.ACTIVE, SessionState.PAUSED)

    def start(self) -> None:
        if self.is_running:
            if settings.WORKOUT_RESTART_POLICY == "reject":
                raise WorkoutStateError("A workout is already in progress")
            log_utils.log_message(
                f"[workout] Replacing unfinished session started {self.start_time.isoformat()} "
                f"({self.steps} steps discarded)",
                "WARN",
            )
        self.state = SessionState.ACTIVE
        self.start_time = self._clock()
        self.steps = 0
        self.distance_km = 0.0
        self._baseline = 0
        self._has_baseline = False
        self.record = None
        log_utils.log_message(f"[workout] Started at {self.start_time.isoformat()}")

    def record_step_delta(self, total_steps_since_boot: int) -> bool:
        """
        Feed a cumulative step-counter reading.

        The first reading after start() is the baseline. Readings outside
        the ACTIVE state are ignored and return False.
        """
        if self.state != SessionState.ACTIVE:
            return False
        if not self._has_baseline:
            self._baseline = total_steps_since_boot
            self._has_baseline = True
        # A counter reset (device reboot) would go negative; clamp it.
        self.steps = max(0, total_steps_since_boot - self._baseline)
        self.distance_km = steps_to_km(self.steps)
        return True

    def pause(self) -> None:
        if self.state != SessionState.ACTIVE:
            raise WorkoutStateError(f"Cannot pause a {self.state.value} workout")
        self.state = SessionState.PAUSED
        log_utils.log_message(f"[workout] Paused at {self.steps} steps, {self.distance_km:.3f} km")

    def finish(self, manual_distance_km: Optional[float] = None) -> WorkoutRecord:
        """
        Close the session and build its record. Rewards are computed here and
        only here; the record is frozen afterwards.
        """
        if not self.is_running:
            raise WorkoutStateError(f"Cannot finish a {self.state.value} workout")

        if manual_distance_km is not None:
            distance, source = manual_distance_km, WorkoutSource.MANUAL
        else:
            distance, source = self.distance_km, WorkoutSource.SENSOR
        eggs, candies = compute_rewards(distance)

        self.record = WorkoutRecord(
            start_time=self.start_time,
            end_time=self._clock(),
            distance_km=distance,
            steps=self.steps,
            source=source,
            eggs_earned=eggs,
            candies_earned=candies,
        )
        self.state = SessionState.FINISHED
        log_utils.log_message(
            f"[workout] Finished: {distance:.3f} km ({source.value}), rewards eggs={eggs}, candies={candies}"
        )
        return self.record
