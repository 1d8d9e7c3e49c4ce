import logging
import random

import numpy as np
import pytest

from apple_catch.catch_agent import AgentConfig, AgentPhase, PolicyAgent
from apple_catch.catch_env import CatchConfig
from apple_catch.catch_trainer import MODE_DEMO, LoopConfig, TrainingLoop, load_table
from apple_catch.errors import CorruptStateError, InvalidHyperparameter
from apple_catch.persistence import QTableStore
from apple_catch.q_table import QTable

DT = 0.1  # one decision per tick with the manual loop config


def test_end_to_end_move_right_and_catch(greedy_agent, make_loop, store):
    agent = greedy_agent
    for key in ("0,3", "1,3", "2,3", "3,3"):
        agent.table.get_or_create(key)[:] = [0.0, 0.0, 1.0]
    loop = make_loop(agent, store=store)
    loop.env.spawn(x=3.0, y=-2.0)

    outcomes = [loop.tick(DT) for _ in range(7)]

    assert outcomes[:6] == [None] * 6
    out = outcomes[6]
    assert out is not None and out.caught
    assert loop.env.receptacle_x == 3.5
    assert abs(loop.env.receptacle_x - 3.0) < agent.cfg.catch_radius
    assert out.reward == 20.0
    assert agent.stats.caught == 1 and agent.stats.missed == 0
    assert (out.state, out.action, out.next_state) == ("3,3", 2, "4,3")
    gamma = agent.cfg.discount_factor
    expected = 0.9 * 1.0 + 0.1 * (20.0 + gamma * agent.table.max_value("4,3"))
    assert np.isclose(agent.table.value("3,3", 2), expected)
    # resolved object is gone, the agent is idle again and the table was saved
    assert len(loop.env) == 0
    assert agent.phase is AgentPhase.IDLE
    assert store.load() == agent.table


def test_receptacle_never_leaves_bounds(make_loop):
    cfg = AgentConfig(exploration_rate=1.0, exploration_min=1.0, move_step=2.0,
                      x_min=-3.0, x_max=3.0)
    agent = PolicyAgent(cfg, rng=random.Random(5))
    loop_cfg = LoopConfig(spawn_interval=0.5, time_scale=1.0, report_every=0, qtable_path=None)
    loop = make_loop(agent, loop_cfg=loop_cfg)
    xs = []
    for _ in range(2000):
        loop.tick(DT)
        xs.append(loop.env.receptacle_x)
    assert min(xs) >= -3.0 and max(xs) <= 3.0
    assert min(xs) == -3.0 and max(xs) == 3.0
    assert agent.stats.episodes > 0


def test_spawn_on_start_and_nearest_acquired(greedy_agent):
    loop_cfg = LoopConfig(time_scale=1.0, report_every=0, qtable_path=None)
    loop = TrainingLoop.from_config(greedy_agent.cfg, CatchConfig(seed=3), loop_cfg)
    loop.tick(1 / 60)
    assert len(loop.env) == 1
    assert loop.agent.tracking
    assert loop.agent.target_id == next(iter(loop.env.objects))


def test_target_locked_until_resolved(greedy_agent, make_loop):
    loop = make_loop(greedy_agent)
    far = loop.env.spawn(x=6.0, y=5.0)
    loop.tick(DT)
    assert greedy_agent.target_id == far.id
    near = loop.env.spawn(x=0.0, y=5.0)
    loop.tick(DT)
    assert greedy_agent.target_id == far.id
    assert near.id in loop.env.objects


def test_vanished_target_is_abandoned(greedy_agent, make_loop):
    loop = make_loop(greedy_agent)
    obj = loop.env.spawn(x=1.0, y=5.0)
    loop.tick(DT)
    loop.env.remove(obj.id)
    loop.tick(DT)
    assert greedy_agent.phase is AgentPhase.IDLE
    assert greedy_agent.stats.episodes == 0


def test_decision_timer_independent_of_frame_rate(greedy_agent, make_loop):
    loop = make_loop(greedy_agent)
    loop.env.spawn(x=7.0, y=5.0)
    # 1 s of 0.025 s frames: about 10 decisions, each one step left on an empty table
    for _ in range(40):
        loop.tick(0.025)
    assert -0.5 * 10 <= loop.env.receptacle_x <= -0.5 * 8


def test_demo_mode_does_not_learn_or_save(make_loop, store):
    cfg = AgentConfig(exploration_rate=0.5, exploration_min=0.0)
    agent = PolicyAgent(cfg, rng=random.Random(2))
    loop = make_loop(agent, store=store, mode=MODE_DEMO)
    loop.env.spawn(x=0.0, y=-4.0)
    for _ in range(5):
        loop.tick(DT)
    assert agent.stats.episodes == 1
    assert agent.exploration_rate == 0.5
    assert all(v == [0.0, 0.0, 0.0] for v in agent.table.to_dict().values())
    assert not store.exists()


def test_run_headless_counts_episodes():
    cfg = AgentConfig(seed=4)
    loop = TrainingLoop.from_config(cfg, CatchConfig(seed=4), LoopConfig(report_every=0, qtable_path=None))
    ticks = loop.run_headless(5, max_ticks=100_000)
    assert loop.agent.stats.episodes == 5
    assert 0 < ticks < 100_000
    assert loop.agent.exploration_rate < cfg.exploration_rate


def test_background_save_mode(tmp_path):
    path = tmp_path / "q.json"
    loop_cfg = LoopConfig(report_every=0, qtable_path=str(path), background_save=True)
    loop = TrainingLoop.from_config(AgentConfig(seed=1), CatchConfig(seed=1), loop_cfg)
    loop.run_headless(3, max_ticks=100_000)
    loop.close()
    assert QTableStore(path).load() == loop.agent.table


def test_report_logs_summary(greedy_agent, make_loop, caplog):
    loop = make_loop(greedy_agent)
    greedy_agent.stats.caught, greedy_agent.stats.missed = 1, 3
    with caplog.at_level(logging.INFO, logger="apple_catch.catch_trainer"):
        line = loop.report()
    assert line.startswith("Success rate: 25.00% | Caught: 1 | Missed: 3 | Q-table: 0")
    assert line in caplog.text


def test_load_table_corrupt_raises_or_falls_back(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_text("{broken", encoding="utf-8")
    with pytest.raises(CorruptStateError):
        load_table(store)
    assert store.exists()

    t = load_table(store, fallback_on_corrupt=True)
    assert t == QTable()
    assert not store.exists()
    assert store.path.with_name("qTable.json.corrupt").exists()


def test_from_config_resumes_saved_table(tmp_path, greedy_cfg):
    path = tmp_path / "q.json"
    saved = QTable()
    saved.get_or_create("0,3")[:] = [0.0, 0.0, 5.0]
    QTableStore(path).save(saved)
    loop = TrainingLoop.from_config(greedy_cfg, CatchConfig(), LoopConfig(qtable_path=str(path)))
    assert loop.agent.table == saved


@pytest.mark.parametrize("name", ["spawn_interval", "decision_interval", "time_scale"])
@pytest.mark.parametrize("value", [0.0, -1.0])
def test_loop_intervals_must_be_positive(name, value):
    with pytest.raises(InvalidHyperparameter):
        LoopConfig(**{name: value})


def test_negative_report_interval_rejected():
    with pytest.raises(InvalidHyperparameter):
        LoopConfig(report_every=-1)
