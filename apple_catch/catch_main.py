# ===============================
# File: catch_main.py
# ===============================
from __future__ import annotations
from dataclasses import replace
from typing import List, Optional
import argparse
import logging

from .catch_trainer import MODE_DEMO, MODE_TRAIN, TrainingLoop
from .config import Settings, load_settings

logger = logging.getLogger(__name__)

HEADLESS_DT = 1.0 / 60.0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="apple-catch",
                                description="Tabular Q-learning basket that learns to catch falling apples.")
    p.add_argument("--headless", action="store_true", help="no window; train as fast as possible")
    p.add_argument("--episodes", type=int, default=500, help="episodes to run in headless mode")
    p.add_argument("--demo", action="store_true", help="start in greedy demo mode (no learning)")
    p.add_argument("--qtable", default=None, help="Q-table JSON path ('' disables saving)")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--time-scale", type=float, default=None)
    p.add_argument("--background-save", action="store_true")
    p.add_argument("--fallback-on-corrupt", action="store_true",
                   help="move a corrupt Q-table aside and start empty instead of exiting")
    p.add_argument("--env-file", default=None, help=".env file with APPLE_CATCH_* overrides")
    p.add_argument("--log-level", default="INFO")
    return p


def apply_args(s: Settings, args: argparse.Namespace) -> Settings:
    loop = s.loop
    if args.qtable is not None:
        loop = replace(loop, qtable_path=args.qtable or None)
    if args.time_scale is not None:
        loop = replace(loop, time_scale=args.time_scale)
    if args.background_save:
        loop = replace(loop, background_save=True)
    if args.fallback_on_corrupt:
        loop = replace(loop, fallback_on_corrupt=True)
    s.loop = loop
    if args.seed is not None:
        s.agent = replace(s.agent, seed=args.seed)
        s.env = replace(s.env, seed=args.seed)
    return s


def run_headless(trainer: TrainingLoop, episodes: int) -> None:
    ticks = trainer.run_headless(episodes, dt=HEADLESS_DT)
    logger.info("[DONE] %d episodes in %d ticks", episodes, ticks)
    trainer.report()


def run_window(trainer: TrainingLoop) -> None:
    import pygame
    from .catch_renderer import Renderer

    renderer = Renderer(fps=60, basket_w=trainer.agent.cfg.catch_radius,
                        basket_y=trainer.cfg.terminal_y)
    dt = 0.0
    running = True
    while running:
        for event in renderer.pump_events():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    running = False
                elif event.key == pygame.K_F2:
                    trainer.mode = MODE_TRAIN
                elif event.key == pygame.K_F3:
                    trainer.mode = MODE_DEMO

        trainer.tick(dt)

        s = trainer.agent.stats
        hud = (f"Mode:{trainer.mode}  Caught:{s.caught} Missed:{s.missed}  "
               f"Rate:{s.success_rate * 100.0:.1f}%\n"
               f"ε:{trainer.agent.exploration_rate:.3f}  Q-table:{len(trainer.agent.table)}  "
               f"Phase:{trainer.agent.phase.value}")
        dt = renderer.draw(trainer.env.receptacle_x, trainer.env.object_positions(),
                           hud_text=hud, terminal_y=trainer.cfg.terminal_y)
    pygame.quit()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format="[%(levelname)s] %(message)s")

    settings = apply_args(load_settings(args.env_file), args)

    mode = MODE_DEMO if args.demo else MODE_TRAIN
    trainer = TrainingLoop.from_config(settings.agent, settings.env, settings.loop, mode=mode)
    try:
        if args.headless:
            run_headless(trainer, args.episodes)
        else:
            run_window(trainer)
    finally:
        trainer.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
