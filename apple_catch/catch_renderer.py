# ===============================
# File: catch_renderer.py
# ===============================
from __future__ import annotations
import pygame
from typing import List, Tuple

# visible world window (world units)
WORLD_X = (-8.0, 8.0)
WORLD_Y = (-6.5, 6.5)


class Renderer:
    def __init__(self, w: int = 640, h: int = 520, fps: int = 60,
                 basket_w: float = 1.5, basket_y: float = -5.0):
        pygame.init()
        self.w, self.h = w, h
        self.fps = fps
        self.basket_w = basket_w
        self.basket_y = basket_y
        self.screen = pygame.display.set_mode((w, h + 80))
        pygame.display.set_caption("Apple Catch — Q-learning")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("consolas", 20)
        self.big = pygame.font.SysFont("consolas", 22, bold=True)

    def to_screen(self, x: float, y: float) -> Tuple[int, int]:
        (x0, x1), (y0, y1) = WORLD_X, WORLD_Y
        sx = (x - x0) / (x1 - x0) * self.w
        sy = (y1 - y) / (y1 - y0) * self.h  # world y up, screen y down
        return int(sx), int(sy)

    def scale(self, d: float) -> int:
        return int(d / (WORLD_X[1] - WORLD_X[0]) * self.w)

    def draw(self, receptacle_x: float, objects: List[Tuple[float, float]],
             hud_text: str, terminal_y: float | None = None) -> float:
        """Draw one frame; returns the elapsed wall time (s) since the previous frame."""
        self.screen.fill((250, 250, 250))
        if terminal_y is not None:
            _, ty = self.to_screen(0.0, terminal_y)
            pygame.draw.line(self.screen, (200, 200, 200), (0, ty), (self.w, ty), 1)
        # basket
        bx, by = self.to_screen(receptacle_x - self.basket_w / 2, self.basket_y)
        pygame.draw.rect(self.screen, (139, 90, 43),
                         pygame.Rect(bx, by, self.scale(self.basket_w), 14))
        # apples
        r = max(4, self.scale(0.3))
        for ox, oy in objects:
            pygame.draw.circle(self.screen, (220, 30, 30), self.to_screen(ox, oy), r)
        # HUD
        y = self.h + 8
        for line in hud_text.split("\n"):
            surf = self.big.render(line, True, (20, 20, 20))
            self.screen.blit(surf, (10, y))
            y += surf.get_height() + 2
        pygame.display.flip()
        return self.clock.tick(self.fps) / 1000.0

    def pump_events(self):
        return pygame.event.get()
