# ===============================
# File: catch_agent.py
# ===============================
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging
import random

import numpy as np

from .errors import InvalidHyperparameter
from .q_table import QTable, N_ACTIONS
from .state_encoder import StateEncoder

logger = logging.getLogger(__name__)

# 인덱스 = Q-table 컬럼. 순서를 바꾸면 저장된 테이블과 어긋납니다.
# 0: move_left, 1: stay, 2: move_right
ACTIONS = (-1.0, 0.0, 1.0)
ACTION_NAMES = ("move_left", "stay", "move_right")
if len(ACTIONS) != N_ACTIONS:
    raise RuntimeError(f"{len(ACTIONS)} actions defined but Q-table rows hold {N_ACTIONS}")


@dataclass
class AgentConfig:
    learning_rate: float = 0.1       # α
    discount_factor: float = 0.95    # γ
    exploration_rate: float = 0.3    # ε (start)
    exploration_decay: float = 0.99  # per resolved episode, multiplicative
    exploration_min: float = 0.01    # ε floor
    catch_radius: float = 1.5
    catch_reward: float = 20.0
    miss_penalty: float = -10.0
    move_step: float = 0.5           # displacement per decision tick
    x_min: float = -7.5              # receptacle clamp
    x_max: float = 7.5
    seed: Optional[int] = None

    def __post_init__(self):
        for name in ("learning_rate", "discount_factor", "exploration_rate",
                     "exploration_decay", "exploration_min"):
            v = getattr(self, name)
            if not (0.0 <= v <= 1.0):
                raise InvalidHyperparameter(name, v, "a value in [0, 1]")
        if self.exploration_min > self.exploration_rate:
            raise InvalidHyperparameter("exploration_min", self.exploration_min,
                                        f"<= exploration_rate ({self.exploration_rate})")
        if not self.x_min < self.x_max:
            raise InvalidHyperparameter("x_min", self.x_min, f"< x_max ({self.x_max})")
        if not self.catch_radius > 0:
            raise InvalidHyperparameter("catch_radius", self.catch_radius, "> 0")
        if not self.move_step >= 0:
            raise InvalidHyperparameter("move_step", self.move_step, ">= 0")

    def displacement(self, action: int) -> float:
        return ACTIONS[action] * self.move_step


class AgentPhase(str, Enum):
    IDLE = "Idle"
    TRACKING = "Tracking"
    RESOLVED = "Resolved"


@dataclass
class TrainingStats:
    caught: int = 0
    missed: int = 0

    @property
    def episodes(self) -> int:
        return self.caught + self.missed

    @property
    def success_rate(self) -> float:
        return self.caught / self.episodes if self.episodes > 0 else 0.0


@dataclass(frozen=True)
class Decision:
    state: str
    action: int
    displacement: float
    explored: bool


@dataclass(frozen=True)
class Outcome:
    state: str
    action: int
    next_state: str
    reward: float
    caught: bool
    q_before: float
    q_after: float
    exploration_rate: float


class PolicyAgent:
    """Epsilon-greedy tabular Q-learning agent for the catch task.

    Idle -> Tracking (acquire) -> Resolved (resolve) -> Idle.
    The agent owns the table, ε and the stats; it only talks to the world
    through positions passed in and displacements handed back.
    `on_resolved` (e.g. QTableStore.save) is called with the table once per
    resolved episode.
    """

    def __init__(self, cfg: AgentConfig, table: Optional[QTable] = None,
                 encoder: Optional[StateEncoder] = None,
                 rng: Optional[random.Random] = None,
                 on_resolved=None):
        self.cfg = cfg
        self.table = table if table is not None else QTable(len(ACTIONS))
        self.encoder = encoder or StateEncoder()
        self.rng = rng if rng is not None else random.Random(cfg.seed)
        self.on_resolved = on_resolved
        self.exploration_rate = cfg.exploration_rate
        self.stats = TrainingStats()
        self.phase = AgentPhase.IDLE
        self.target_id: Optional[int] = None
        self._last: Optional[Decision] = None

    # -------------- Phase transitions --------------
    def acquire(self, target_id: int) -> None:
        """Idle -> Tracking."""
        self.target_id = target_id
        self._last = None
        self.phase = AgentPhase.TRACKING

    def abandon(self) -> None:
        """Target vanished before it could be resolved: back to Idle, nothing learned."""
        logger.debug("abandoning target %s", self.target_id)
        self._reset_tracking()

    def _reset_tracking(self) -> None:
        self.target_id = None
        self._last = None
        self.phase = AgentPhase.IDLE

    @property
    def tracking(self) -> bool:
        return self.phase is AgentPhase.TRACKING

    # -------------- Policy --------------
    def choose_action(self, state: str) -> int:
        action, _ = self._choose(state, self.exploration_rate)
        return action

    def _choose(self, state: str, epsilon: float):
        self.table.get_or_create(state)  # unseen state -> zero row, never a fault
        if self.rng.random() < epsilon:
            return self.rng.randrange(len(ACTIONS)), True
        return self.table.best_action(state)[0], False

    def clamp(self, x: float) -> float:
        return float(np.clip(x, self.cfg.x_min, self.cfg.x_max))

    def decide(self, receptacle_x: float, target_x: float, explore: bool = True) -> Decision:
        """One decision tick: encode, pick an action, remember (s, a) for the update."""
        state = self.encoder.encode(receptacle_x, target_x)
        action, explored = self._choose(state, self.exploration_rate if explore else 0.0)
        d = Decision(state, action, self.cfg.displacement(action), explored)
        self._last = d
        return d

    # -------------- Learning --------------
    def is_catch(self, receptacle_x: float, target_x: float) -> bool:
        return abs(receptacle_x - target_x) < self.cfg.catch_radius

    def reward_for(self, receptacle_x: float, target_x: float) -> float:
        return self.cfg.catch_reward if self.is_catch(receptacle_x, target_x) else self.cfg.miss_penalty

    def learn(self, state: str, action: int, reward: float, next_state: str) -> float:
        """TD(0): target = r + γ·max_a' Q(s', a')."""
        target = reward + self.cfg.discount_factor * self.table.max_value(next_state)
        return self.table.update(state, action, target, self.cfg.learning_rate)

    def decay_exploration(self) -> float:
        self.exploration_rate = max(self.cfg.exploration_min,
                                    self.exploration_rate * self.cfg.exploration_decay)
        return self.exploration_rate

    def resolve(self, receptacle_x: float, target_x: float, learn: bool = True) -> Outcome:
        """Tracking -> Resolved -> Idle. Called once when the target crosses the terminal y.

        `learn=False` (demo mode) scores the episode but leaves the table,
        ε and the persisted file untouched.
        """
        if self._last is None:
            # no decision yet on this target
            self.decide(receptacle_x, target_x, explore=learn)
        self.phase = AgentPhase.RESOLVED
        last = self._last

        reward = self.reward_for(receptacle_x, target_x)
        caught = self.is_catch(receptacle_x, target_x)
        if caught:
            self.stats.caught += 1
        else:
            self.stats.missed += 1

        next_state = self.encoder.encode(receptacle_x, target_x)
        q_before = self.table.value(last.state, last.action)
        q_after = q_before
        if learn:
            q_after = self.learn(last.state, last.action, reward, next_state)
            self.decay_exploration()

        outcome = Outcome(last.state, last.action, next_state, reward, caught,
                          q_before, q_after, self.exploration_rate)
        logger.debug("episode %d %s: s=%s a=%s r=%.1f Q %.3f -> %.3f eps=%.3f",
                     self.stats.episodes, "caught" if caught else "missed",
                     last.state, ACTION_NAMES[last.action], reward, q_before, q_after,
                     self.exploration_rate)

        self._reset_tracking()
        if learn and self.on_resolved is not None:
            self.on_resolved(self.table)
        return outcome
