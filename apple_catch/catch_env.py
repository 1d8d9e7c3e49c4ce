# ===============================
# File: catch_env.py
# ===============================
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import itertools
import random

from .errors import InvalidHyperparameter


@dataclass
class CatchConfig:
    """Apple Catch 시뮬레이터 설정값.
    - 생성 위치, 낙하 속도, 소멸 높이, 바구니 시작 위치를 한 곳에서 관리합니다.
    - 좌표계: x는 오른쪽이 +, y는 위쪽이 + (월드 단위).
    """
    spawn_x_min: float = -7.0        # 사과 생성 x 범위(균등 분포)
    spawn_x_max: float = 7.0
    spawn_y: float = 6.0             # 화면 위쪽에서 등장
    fall_speed: float = 5.0          # 초당 낙하 거리(월드 단위/s)
    despawn_y: float = -6.0          # 이 높이 아래로 내려가면 제거
    receptacle_start_x: float = 0.0  # 바구니 시작 x
    seed: Optional[int] = 7          # 재현성 있는 생성 위치를 위해 내부 RNG 사용

    def __post_init__(self):
        # fall_speed <= 0 이면 사과가 영원히 떨어지지 않아 에피소드가 끝나지 않음
        if not self.fall_speed > 0:
            raise InvalidHyperparameter("fall_speed", self.fall_speed, "> 0")
        if self.spawn_x_min > self.spawn_x_max:
            raise InvalidHyperparameter("spawn_x_min", self.spawn_x_min, f"<= spawn_x_max ({self.spawn_x_max})")
        if not self.despawn_y < self.spawn_y:
            raise InvalidHyperparameter("despawn_y", self.despawn_y, f"< spawn_y ({self.spawn_y})")


@dataclass
class FallingObject:
    id: int
    x: float
    y: float


class AppleFall:
    """떨어지는 사과와 좌우로만 움직이는 바구니 (1-D 수평 위치 추적).

    - 사과: 생성된 뒤 일정 속도로 아래로 떨어지고, despawn_y 아래에서 제거됩니다.
    - 바구니: x만 가지며, 외부(에이전트/트레이너)가 준 변위만큼만 움직입니다.
      경계 클램핑은 이 클래스가 아니라 호출하는 쪽 책임입니다.

    충돌/보상 판정은 하지 않습니다. 에이전트가 위치만 보고 판정합니다.
    """

    def __init__(self, cfg: CatchConfig):
        self.cfg = cfg
        self.rng = random.Random(cfg.seed)
        self._ids = itertools.count(1)
        self.reset()

    # -------------- Public API --------------
    def reset(self) -> float:
        """바구니를 시작 위치로 되돌리고 모든 사과를 제거."""
        self.receptacle_x = float(self.cfg.receptacle_start_x)
        self.objects: Dict[int, FallingObject] = {}
        self.elapsed = 0.0
        return self.receptacle_x

    def spawn(self, x: Optional[float] = None, y: Optional[float] = None) -> FallingObject:
        """새 사과 1개 생성. x를 주지 않으면 [spawn_x_min, spawn_x_max]에서 균등 샘플링."""
        if x is None:
            x = self.rng.uniform(self.cfg.spawn_x_min, self.cfg.spawn_x_max)
        if y is None:
            y = self.cfg.spawn_y
        obj = FallingObject(next(self._ids), float(x), float(y))
        self.objects[obj.id] = obj
        return obj

    def step(self, dt: float) -> List[int]:
        """dt초만큼 물리 진행: 모든 사과를 아래로 이동하고, 바닥 아래로 간 사과는 제거.
        반환: 이번 스텝에 제거된 사과 id 목록.
        """
        self.elapsed += dt
        for obj in self.objects.values():
            obj.y -= self.cfg.fall_speed * dt
        gone = [i for i, obj in self.objects.items() if obj.y < self.cfg.despawn_y]
        for i in gone:
            del self.objects[i]
        return gone

    def move_receptacle(self, dx: float) -> float:
        self.receptacle_x += dx
        return self.receptacle_x

    def set_receptacle_x(self, x: float) -> None:
        self.receptacle_x = float(x)

    def get(self, obj_id: Optional[int]) -> Optional[FallingObject]:
        if obj_id is None:
            return None
        return self.objects.get(obj_id)

    def remove(self, obj_id: int) -> None:
        self.objects.pop(obj_id, None)

    def nearest_object(self) -> Optional[FallingObject]:
        """바구니와 수평 거리가 가장 가까운 사과. 거리가 같으면 먼저 생성된 사과가 우선."""
        best: Optional[FallingObject] = None
        best_d = 0.0
        for obj in self.objects.values():
            d = abs(obj.x - self.receptacle_x)
            if best is None or d < best_d:
                best, best_d = obj, d
        return best

    # -------------- Helpers (rendering) --------------
    def object_positions(self) -> List[Tuple[float, float]]:
        return [(o.x, o.y) for o in self.objects.values()]

    def __len__(self) -> int:
        return len(self.objects)
