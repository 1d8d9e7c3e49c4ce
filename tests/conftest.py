import random

import pytest

from apple_catch.catch_agent import AgentConfig, PolicyAgent
from apple_catch.catch_env import AppleFall, CatchConfig
from apple_catch.catch_trainer import LoopConfig, TrainingLoop
from apple_catch.persistence import QTableStore


@pytest.fixture
def greedy_cfg():
    return AgentConfig(exploration_rate=0.0, exploration_min=0.0, seed=0)


@pytest.fixture
def greedy_agent(greedy_cfg):
    return PolicyAgent(greedy_cfg, rng=random.Random(0))


@pytest.fixture
def store(tmp_path):
    return QTableStore(tmp_path / "data" / "qTable.json")


@pytest.fixture
def manual_loop_cfg():
    # no automatic spawns, real-time clock, no file
    return LoopConfig(spawn_interval=1e9, spawn_on_start=False, time_scale=1.0,
                      report_every=0, qtable_path=None)


@pytest.fixture
def make_loop(manual_loop_cfg):
    def _make(agent, loop_cfg=None, store=None, mode="AI_TRAIN", env_cfg=None):
        env = AppleFall(env_cfg or CatchConfig(seed=1))
        return TrainingLoop(env, agent, loop_cfg or manual_loop_cfg, store=store, mode=mode)
    return _make
