from __future__ import annotations

import dataclasses
import enum
import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Sequence

from galaxy_sim2d.core.bodies import Body, Snapshot, check_bodies
from galaxy_sim2d.core.handoff import Latest, StateBuffer
from galaxy_sim2d.errors import SimulationFault
from galaxy_sim2d.params import SimParams
from galaxy_sim2d.physics.forces import BarnesHutSolver


class LoopState(enum.Enum):
    IDLE = "idle"
    BUILDING = "building"
    AGGREGATING = "aggregating"
    FORCE_AND_INTEGRATE = "force_and_integrate"
    PUBLISHING = "publishing"
    STOPPED = "stopped"
    FAULTED = "faulted"


@dataclass(slots=True)
class StepStats:
    step: int
    build_ms: float
    aggregate_ms: float
    force_ms: float
    total_ms: float
    node_count: int
    dropped: int
    root_mass: float
    max_visits: int


class BarnesHutSim:
    """
    Runs Barnes-Hut steps on a dedicated thread and publishes each finished
    step to a double buffer.

    A step only starts when permitted: either a credit from ``request_step``
    or free-running mode from ``resume``. ``pause`` withdraws both. A step,
    once started, always runs to publish; ``stop`` takes effect between steps.
    """

    def __init__(self, bodies: Sequence[Body], params: SimParams) -> None:
        p = dataclasses.replace(params).clamp().check()
        check_bodies(bodies)
        self.params = p

        self._buffer = StateBuffer(Snapshot.from_bodies(bodies))
        self._cond = threading.Condition()
        self._credits = 0
        self._free_running = False
        self._stop_requested = False
        self._exited = False
        self._completed = 0
        self._state = LoopState.IDLE
        self._fault: SimulationFault | None = None
        self._thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._solver: BarnesHutSolver | None = None
        self.last_stats: StepStats | None = None

    # -- consumer side -------------------------------------------------

    def start(self) -> "BarnesHutSim":
        if self._thread is not None:
            raise RuntimeError("simulation already started")
        p = self.params
        if p.log_steps:
            for w in p.validate():
                print(f"[params] {w}", file=sys.stderr)

        workers = p.worker_count()
        if workers > 1:
            self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bh-force")
        self._solver = BarnesHutSolver(p, self._executor)
        self._thread = threading.Thread(target=self._run, name="bh-sim", daemon=True)
        self._thread.start()
        return self

    def request_step(self, count: int = 1) -> None:
        """Allow ``count`` more steps to run."""
        with self._cond:
            self._check_open()
            self._credits += max(0, int(count))
            self._cond.notify_all()

    def resume(self) -> None:
        """Run steps back to back until ``pause`` or ``stop``."""
        with self._cond:
            self._check_open()
            self._free_running = True
            self._cond.notify_all()

    def pause(self) -> None:
        """Hold at idle once the current step (if any) has published."""
        with self._cond:
            self._credits = 0
            self._free_running = False

    def stop(self, timeout: float | None = None) -> None:
        """Request termination and wait for the computation thread to exit."""
        with self._cond:
            self._stop_requested = True
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout)
        else:
            with self._cond:
                self._exited = True
                self._state = LoopState.STOPPED
                self._cond.notify_all()

    def try_take_latest(self, newer_than: int | None = None) -> Latest | None:
        """
        Non-blocking read of (previous, current, interval, published_at).

        Before the first publish both snapshots are the initial state and
        ``step`` is 0. With ``newer_than`` set, returns None unless a step
        later than it has been published. Raises the recorded
        ``SimulationFault`` if the loop died mid-step.
        """
        self._raise_fault()
        return self._buffer.take(newer_than)

    def wait_for_step(self, after: int, timeout: float | None = None) -> bool:
        """
        Block until more than ``after`` steps have completed.

        Read ``completed_steps`` before ``request_step`` and pass it here; a
        step that already published then still counts.
        """
        with self._cond:
            self._cond.wait_for(
                lambda: self._completed > after or self._fault is not None or self._exited,
                timeout,
            )
            if self._fault is not None:
                raise self._fault
            return self._completed > after

    def status(self) -> LoopState:
        with self._cond:
            if self._fault is not None:
                raise self._fault
            return self._state

    @property
    def completed_steps(self) -> int:
        with self._cond:
            return self._completed

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def __enter__(self) -> "BarnesHutSim":
        if self._thread is None:
            self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def _check_open(self) -> None:
        if self._stop_requested or self._exited:
            raise RuntimeError("simulation has been stopped")

    def _raise_fault(self) -> None:
        with self._cond:
            if self._fault is not None:
                raise self._fault

    # -- computation thread --------------------------------------------

    def _run(self) -> None:
        try:
            while self._await_permission():
                self._step_once()
        except Exception as exc:
            fault = SimulationFault(self._completed + 1, f"{type(exc).__name__}: {exc}")
            fault.__cause__ = exc
            print(f"[sim] {fault}", file=sys.stderr)
            with self._cond:
                self._fault = fault
                self._state = LoopState.FAULTED
        finally:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
            with self._cond:
                if self._state is not LoopState.FAULTED:
                    self._state = LoopState.STOPPED
                self._exited = True
                self._cond.notify_all()

    def _await_permission(self) -> bool:
        with self._cond:
            self._state = LoopState.IDLE
            while not self._stop_requested and not (self._free_running or self._credits > 0):
                self._cond.wait()
            if self._stop_requested:
                return False
            if not self._free_running:
                self._credits -= 1
            self._state = LoopState.BUILDING
            return True

    def _enter(self, state: LoopState) -> None:
        with self._cond:
            self._state = state

    def _step_once(self) -> None:
        solver = self._solver
        assert solver is not None
        t0 = time.perf_counter()

        # fresh working copy; the published snapshot is never touched
        bodies = self._buffer.take().current.to_bodies()

        tree = solver.build(bodies)
        self._enter(LoopState.AGGREGATING)
        solver.aggregate(tree)
        self._enter(LoopState.FORCE_AND_INTEGRATE)
        max_visits = solver.force_and_drift(tree, bodies)
        self._enter(LoopState.PUBLISHING)

        snapshot = Snapshot.from_bodies(bodies)
        stats = StepStats(
            step=self._completed + 1,
            build_ms=solver.last_build_time_ms or 0.0,
            aggregate_ms=solver.last_aggregate_time_ms or 0.0,
            force_ms=solver.last_traverse_time_ms or 0.0,
            total_ms=(time.perf_counter() - t0) * 1000.0,
            node_count=tree.node_count(),
            dropped=tree.dropped,
            root_mass=tree.root.total_mass,
            max_visits=max_visits,
        )
        del tree

        latest = self._buffer.publish(snapshot)
        with self._cond:
            self.last_stats = stats
            self._completed = latest.step
            self._cond.notify_all()

        p = self.params
        if p.log_steps and stats.step % p.log_every == 0:
            print(
                f"[sim] step {stats.step} update {stats.total_ms:.1f}ms "
                f"(build {stats.build_ms:.1f} aggregate {stats.aggregate_ms:.1f} force {stats.force_ms:.1f}) "
                f"nodes={stats.node_count} dropped={stats.dropped} interval={latest.interval * 1000.0:.1f}ms",
                file=sys.stderr,
            )


def start(bodies: Sequence[Body], params: SimParams) -> BarnesHutSim:
    """Validate inputs and start the background loop. Raises ConfigError."""
    return BarnesHutSim(bodies, params).start()
