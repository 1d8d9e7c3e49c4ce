# ===============================
# File: catch_trainer.py
# ===============================
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import logging

from .catch_agent import AgentConfig, Outcome, PolicyAgent
from .catch_env import AppleFall, CatchConfig
from .errors import CorruptStateError, InvalidHyperparameter
from .persistence import BackgroundSaver, QTableStore
from .q_table import QTable

logger = logging.getLogger(__name__)

MODE_TRAIN = "AI_TRAIN"
MODE_DEMO = "AI_DEMO"


@dataclass
class LoopConfig:
    spawn_interval: float = 2.5      # s (sim time) between spawns
    decision_interval: float = 0.1   # s (sim time) between decisions, independent of frame rate
    terminal_y: float = -5.0         # below this the tracked object is resolved
    time_scale: float = 2.0          # sim seconds per wall second
    report_every: int = 300          # ticks between summary log lines (0 = never)
    spawn_on_start: bool = True
    qtable_path: Optional[str] = "data/qTable.json"
    background_save: bool = False
    fallback_on_corrupt: bool = False

    def __post_init__(self):
        for name in ("spawn_interval", "decision_interval", "time_scale"):
            v = getattr(self, name)
            if not v > 0:
                raise InvalidHyperparameter(name, v, "> 0")
        if self.report_every < 0:
            raise InvalidHyperparameter("report_every", self.report_every, ">= 0")


class TrainingLoop:
    """Tick-driven driver: owns the simulator, the agent and the two timers.

    Each tick(dt):
      1) advance the simulator by dt * time_scale
      2) spawn timer -> new object
      3) Idle agent -> lock onto the nearest object
      4) decision timer -> decide, move, clamp, then resolve if the target is below terminal_y
      5) every report_every ticks -> summary line
    """

    def __init__(self, env: AppleFall, agent: PolicyAgent, cfg: LoopConfig,
                 store: Optional[QTableStore] = None, mode: str = MODE_TRAIN):
        self.env = env
        self.agent = agent
        self.cfg = cfg
        self.store = store
        self.mode = mode
        self.saver: Optional[BackgroundSaver] = None
        if store is not None and agent.on_resolved is None:
            if cfg.background_save:
                self.saver = BackgroundSaver(store)
                agent.on_resolved = self.saver
            else:
                agent.on_resolved = store.save
        self.spawn_timer = cfg.spawn_interval if cfg.spawn_on_start else 0.0
        self.decision_timer = 0.0
        self.ticks = 0

    @classmethod
    def from_config(cls, agent_cfg: AgentConfig, env_cfg: CatchConfig, cfg: LoopConfig,
                    mode: str = MODE_TRAIN) -> "TrainingLoop":
        store = QTableStore(cfg.qtable_path) if cfg.qtable_path else None
        table = load_table(store, cfg.fallback_on_corrupt) if store is not None else QTable()
        agent = PolicyAgent(agent_cfg, table)
        return cls(AppleFall(env_cfg), agent, cfg, store, mode)

    @property
    def learning(self) -> bool:
        return self.mode == MODE_TRAIN

    # -------------- Tick --------------
    def tick(self, dt: float) -> Optional[Outcome]:
        """Advance one frame. Returns the Outcome if an episode resolved on this tick."""
        sim_dt = dt * self.cfg.time_scale
        self.ticks += 1
        self.env.step(sim_dt)

        self.spawn_timer += sim_dt
        if self.spawn_timer >= self.cfg.spawn_interval:
            self.env.spawn()
            self.spawn_timer = 0.0

        if self.agent.tracking and self.env.get(self.agent.target_id) is None:
            self.agent.abandon()
        if not self.agent.tracking:
            nearest = self.env.nearest_object()
            if nearest is not None:
                self.agent.acquire(nearest.id)

        outcome = None
        self.decision_timer += sim_dt
        if self.decision_timer >= self.cfg.decision_interval and self.agent.tracking:
            outcome = self._decide()
            self.decision_timer = 0.0

        if self.cfg.report_every and self.ticks % self.cfg.report_every == 0:
            self.report()
        return outcome

    def _decide(self) -> Optional[Outcome]:
        target = self.env.get(self.agent.target_id)
        d = self.agent.decide(self.env.receptacle_x, target.x, explore=self.learning)
        self.env.move_receptacle(d.displacement)
        self.env.set_receptacle_x(self.agent.clamp(self.env.receptacle_x))

        if target.y >= self.cfg.terminal_y:
            return None
        outcome = self.agent.resolve(self.env.receptacle_x, target.x, learn=self.learning)
        self.env.remove(target.id)
        return outcome

    # -------------- Runs --------------
    def run_headless(self, episodes: int, dt: float = 1.0 / 60.0, max_ticks: Optional[int] = None) -> int:
        """Tick with a fixed dt until `episodes` more episodes resolved. Returns ticks used."""
        target = self.agent.stats.episodes + episodes
        start = self.ticks
        while self.agent.stats.episodes < target:
            if max_ticks is not None and self.ticks - start >= max_ticks:
                logger.warning("stopping after %d ticks with %d/%d episodes",
                               max_ticks, self.agent.stats.episodes, target)
                break
            self.tick(dt)
        return self.ticks - start

    def summary(self) -> str:
        s = self.agent.stats
        return (f"Success rate: {s.success_rate * 100.0:.2f}% | Caught: {s.caught} | "
                f"Missed: {s.missed} | Q-table: {len(self.agent.table)} | "
                f"Exploration: {self.agent.exploration_rate:.2f}")

    def report(self) -> str:
        line = self.summary()
        logger.info(line)
        return line

    def close(self) -> None:
        if self.saver is not None:
            self.saver.close()


def load_table(store: QTableStore, fallback_on_corrupt: bool = False) -> QTable:
    try:
        return store.load()
    except CorruptStateError as e:
        logger.error("%s", e)
        if not fallback_on_corrupt:
            raise
        moved = store.quarantine()
        logger.warning("corrupt Q-table moved to %s, starting with an empty Q-table", moved)
        return QTable(store.n_actions)
