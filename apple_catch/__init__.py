"""Apple Catch: tabular Q-learning basket that learns to catch falling apples."""
from .catch_agent import ACTIONS, AgentConfig, AgentPhase, PolicyAgent, TrainingStats
from .catch_env import AppleFall, CatchConfig
from .catch_trainer import LoopConfig, TrainingLoop
from .errors import CorruptStateError, InvalidActionIndex, InvalidHyperparameter
from .persistence import QTableStore
from .q_table import QTable
from .state_encoder import NONE_STATE, StateEncoder, encode

__version__ = "0.1.0"
