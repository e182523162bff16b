"""
MEST QSR rules engine.

Core modules:
- terrain: Terrain records, battlefield store, elevation and movement class
- collision: Terrain placement validation
- los: Bounding volumes and line of sight
- pathfinding: AP-cost any-angle pathfinding
- cover: Cover analysis and defensive bonus
- tokens / hindrance: Token ledger and derived status
- objectives / endgame / victory: Mission scoring and end of game
- combat/: Hit, damage and fear resolution
- mission: Mission configuration and deployment
- session: BattleSession, the command/query surface
"""

from .rules import RulesConfig, GameSize, HillSize, TokenSpec
from .terrain import (
    Battlefield, Position, Terrain, Hill, Tree, Debris, Structure,
    TerrainKind, MoveClass, make_terrain
)
from .collision import PlacementResult, PlacementValidator
from .los import LOSEngine, LOSResult
from .pathfinding import Pathfinder, PathResult
from .cover import CoverBonusSystem, DefensiveBonus, DefensivePosition
from .models import Model, ModelRoster, NameManager, Profile, Side
from .tokens import TokenKind, TokenLedger
from .hindrance import HindranceTracker, Hindrances
from .objectives import Objective, ObjectiveTracker, ObjectiveType
from .endgame import EndGameSystem
from .victory import VictoryResult, VictorySystem
from .combat import AttackType, CombatReport, CombatSystem
from .mission import MissionConfig, MissionLoader
from .history import HistoryManager
from .session import BattleSession, MoveResult, TurnEndReport
from .errors import (
    MestError, MissionValidationError, UnknownModelError, UnknownTerrainError,
    StaleTerrainError, MissionStateError
)

__all__ = [
    # Rules
    "RulesConfig", "GameSize", "HillSize", "TokenSpec",
    # Terrain
    "Battlefield", "Position", "Terrain", "Hill", "Tree", "Debris", "Structure",
    "TerrainKind", "MoveClass", "make_terrain",
    # Spatial queries
    "PlacementResult", "PlacementValidator", "LOSEngine", "LOSResult",
    "Pathfinder", "PathResult", "CoverBonusSystem", "DefensiveBonus", "DefensivePosition",
    # Models and tokens
    "Model", "ModelRoster", "NameManager", "Profile", "Side",
    "TokenKind", "TokenLedger", "HindranceTracker", "Hindrances",
    # Scoring
    "Objective", "ObjectiveTracker", "ObjectiveType", "EndGameSystem",
    "VictoryResult", "VictorySystem",
    # Combat
    "AttackType", "CombatReport", "CombatSystem",
    # Session
    "MissionConfig", "MissionLoader", "HistoryManager",
    "BattleSession", "MoveResult", "TurnEndReport",
    # Errors
    "MestError", "MissionValidationError", "UnknownModelError", "UnknownTerrainError",
    "StaleTerrainError", "MissionStateError",
]
