"""
Battle session: the one object that owns a battlefield.

Terrain, roster, token ledger and history live here and every component
gets them by reference. Each terrain mutation rebuilds LOS bounds and the
movement-cost grid before returning, so no query can see a half-updated
battlefield.
"""

import random
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .collision import PlacementResult, PlacementValidator
from .combat import AttackType, CombatReport, CombatSystem
from .cover import CoverBonusSystem, DefensiveBonus, DefensivePosition
from .endgame import EndGameSystem, EndOfTurnReport, TURN_LIMIT, VICTORY_CONDITIONS
from .errors import MissionStateError, MissionValidationError, UnknownTerrainError
from .hindrance import Hindrances, HindranceTracker
from .history import HistoryManager, Snapshot
from .los import LOSEngine, LOSResult
from .mission import MissionConfig, MissionLoader, deployment_positions, terrain_params
from .models import Model, ModelRoster, Profile, Side, load_profiles
from .objectives import Completion, ObjectiveStatus, ObjectiveTracker
from .pathfinding import PathResult, Pathfinder
from .rules import RulesConfig
from .terrain import Battlefield, Position, Terrain, make_terrain
from .tokens import OUT_OF_ACTION, TokenKind, TokenLedger
from .victory import VictoryResult, VictorySystem

logger = logging.getLogger(__name__)

# Reserves arrive on this turn when the mission names no reinforcement turns
DEFAULT_ARRIVAL_TURN = 2


@dataclass
class MoveResult:
    model_id: str
    final_position: Position
    ap_cost: float
    path: list[Position] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "model_id": self.model_id,
            "final_position": self.final_position.to_dict(),
            "ap_cost": round(self.ap_cost, 4),
            "path": [p.to_dict() for p in self.path],
        }


@dataclass
class TurnEndReport:
    """Everything that happened at one turn-end."""
    end_game: EndOfTurnReport
    objectives: ObjectiveStatus
    vp: dict[str, int]
    ended: bool = False
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "turn": self.end_game.turn,
            "end_game": self.end_game.to_dict(),
            "objectives": self.objectives.to_dict(),
            "vp": dict(self.vp),
            "ended": self.ended,
            "reason": self.reason,
        }


class BattleSession:
    """Commands and queries for one battlefield and its mission."""

    def __init__(
        self,
        data_path: Path | str = "data",
        rules: Optional[RulesConfig] = None,
        battlefield_size: float = 24.0,
        rng_seed: Optional[int] = None,
        strict_bp: bool = False,
    ):
        self.data_path = Path(data_path)
        self.rules = rules or RulesConfig.load(self.data_path)
        self.profiles = load_profiles(self.data_path)
        self.rng = random.Random(rng_seed)

        self.battlefield = Battlefield(size=battlefield_size)
        self.roster = ModelRoster()
        self.ledger = TokenLedger(self.rules, known_models=self.roster)
        self.hindrance = HindranceTracker(self.ledger, self.roster)
        self.validator = PlacementValidator(battlefield_size)
        self.los = LOSEngine(self.battlefield, self.rules)
        self.pathfinder = Pathfinder(self.battlefield, self.rules)
        self.cover = CoverBonusSystem(self.los, self.pathfinder, self.rules)
        self.combat = CombatSystem(self.roster, self.ledger, self.hindrance, self.cover,
                                   self.rules, rng_seed=rng_seed, rng=self.rng)
        self.objectives = ObjectiveTracker()
        self.victory = VictorySystem()
        self.endgame = self._new_endgame("small")
        self.history = HistoryManager(self._capture, self._restore)
        self.loader = MissionLoader(self.rules, strict_bp=strict_bp, profiles=self.profiles,
                                    presets=MissionLoader.load_presets(self.data_path))

        self.mission: Optional[MissionConfig] = None
        self.starting_counts: dict[Side, int] = {Side.A: 0, Side.B: 0}
        self.bottle_tests: list[tuple[int, Side]] = []

        self.ledger.subscribe(self._on_token_change)

    # --- wiring -----------------------------------------------------------

    def _new_endgame(self, game_size: str) -> EndGameSystem:
        endgame = EndGameSystem(game_size, self.rules, self.rng)
        endgame.on_bottle_test = self._on_bottle_test
        return endgame

    def _on_bottle_test(self, side: Side):
        self.bottle_tests.append((self.endgame.turn, side))

    def _on_token_change(self, model_id: str, kind: TokenKind, new_count: int):
        if kind in OUT_OF_ACTION and new_count > 0:
            model = self.roster.find(model_id)
            if model is not None:
                self.victory.record_elimination(model)

    def _refresh_bounds(self):
        self.los.refresh()
        self.pathfinder.refresh()

    def _capture(self, label: str) -> Snapshot:
        return Snapshot(
            label=label,
            terrain=list(self.battlefield),
            positions={m.id: m.position for m in self.roster},
            ap_spent={m.id: m.ap_spent for m in self.roster},
            rp={side: score.rp for side, score in self.victory.sides.items()},
            first_crossing_side=self.victory.first_crossing_side,
        )

    def _restore(self, snapshot: Snapshot):
        self.battlefield.replace_all(snapshot.terrain)
        for model_id, position in snapshot.positions.items():
            model = self.roster.find(model_id)
            if model is None:
                continue
            model.position = position
            model.ap_spent = snapshot.ap_spent.get(model_id, model.ap_spent)
        # A move that crossed the centre line first takes its RP with it
        for side, rp in snapshot.rp.items():
            self.victory.sides[side].rp = rp
        self.victory.first_crossing_side = snapshot.first_crossing_side
        self._refresh_bounds()

    def _model(self, model) -> Model:
        return model if isinstance(model, Model) else self.roster.get(model)

    def _require_mission(self):
        if self.mission is None:
            raise MissionStateError("No mission loaded")

    def _require_running(self):
        if self.endgame.ended:
            raise MissionStateError(f"Mission already ended ({self.endgame.reason})")

    def _require_on_table(self, model: Model):
        if model.reserve:
            raise MissionStateError(f"{model.identifier} is in reserve")
        if self.ledger.is_out_of_action(model.id):
            raise MissionStateError(f"{model.identifier} is out of action")

    @property
    def current_turn(self) -> int:
        """The turn in play (one more than the turn-ends processed)."""
        return self.endgame.turn + 1

    @property
    def is_over(self) -> bool:
        return self.endgame.ended

    # --- terrain ----------------------------------------------------------

    def is_valid_placement(self, candidate: Terrain) -> PlacementResult:
        return self.validator.is_valid_placement(candidate, self.battlefield, self.battlefield.size)

    def place_terrain(self, kind, x: float, y: float, params: Optional[dict] = None,
                      rotation: float = 0) -> PlacementResult:
        """Place terrain if the placement is legal. Bad parameters raise ValueError."""
        candidate = make_terrain(kind, x, y, params, rotation, self.rules)
        result = self.is_valid_placement(candidate)
        if not result:
            return result
        self.history.record(f"place {candidate.kind.value}")
        terrain = self.battlefield.add(candidate)
        self._refresh_bounds()
        logger.debug(f"Placed {terrain.id} at ({terrain.position.x}, {terrain.position.y})")
        return PlacementResult(True, terrain=terrain)

    def remove_terrain(self, terrain_id: str) -> Terrain:
        if self.battlefield.get(terrain_id) is None:
            raise UnknownTerrainError(terrain_id)
        self.history.record(f"remove {terrain_id}")
        removed = self.battlefield.remove(terrain_id)
        self._refresh_bounds()
        return removed

    def clear_terrain(self):
        self.history.record("clear terrain")
        self.battlefield.clear()
        self._refresh_bounds()

    def undo(self) -> Optional[str]:
        return self.history.undo()

    def redo(self) -> Optional[str]:
        return self.history.redo()

    # --- models -----------------------------------------------------------

    def add_model(self, side: Side | str, x: float, y: float, profile: Optional[Profile | str] = None,
                  identifier: str = "", height: float = 1.0) -> Model:
        """Put a model on the table outside of mission deployment."""
        side = Side(side)
        if isinstance(profile, str):
            profile = self.profiles[profile]
        return self.roster.create(side, Position(float(x), float(y)), profile, identifier,
                                  height=height, bp=(profile or Profile()).bp)

    def active_models(self, side: Optional[Side] = None) -> list[Model]:
        """On-table models that are not KO'd or eliminated."""
        return [
            m for m in self.roster
            if (side is None or m.side == side)
            and not m.reserve and not self.ledger.is_out_of_action(m.id)
        ]

    def enemies_of(self, model) -> list[Model]:
        return self.combat.active_enemies(self._model(model))

    def available_ap(self, model_id: str) -> float:
        return max(0.0, self.hindrance.available_ap(model_id))

    def move_model(self, model_id: str, target) -> Optional[MoveResult]:
        """
        Move along the cheapest path if the model can afford it.

        Returns None when the target cannot be reached with the model's
        remaining AP.
        """
        model = self.roster.get(model_id)
        self._require_running()
        self._require_on_table(model)
        result = self.pathfinder.find_path_with_cost(model.position, target, self.available_ap(model_id))
        if result is None:
            return None
        return self._apply_move(model, result)

    def move_toward(self, model_id: str, target) -> Optional[MoveResult]:
        """Move to the target, or as close to it as the model's AP allows."""
        model = self.roster.get(model_id)
        self._require_running()
        self._require_on_table(model)
        result = self.pathfinder.find_closest_affordable(model.position, target, self.available_ap(model_id))
        if result is None:
            return None
        return self._apply_move(model, result)

    def _apply_move(self, model: Model, result: PathResult) -> MoveResult:
        self.history.record(f"move {model.identifier}")
        old = model.position
        model.position = result.final_position
        model.ap_spent += result.cost
        self.victory.record_move(model, old, model.position)
        return MoveResult(model.id, model.position, result.cost, result.path)

    def find_path(self, start, end, max_ap: Optional[float] = None) -> Optional[PathResult]:
        return self.pathfinder.find_path_with_cost(start, end, max_ap)

    # --- tokens and hindrances ---------------------------------------------

    def add_token(self, model_id: str, kind: TokenKind | str, count: int = 1) -> int:
        return self.ledger.add_token(model_id, kind, count)

    def remove_token(self, model_id: str, kind: TokenKind | str) -> int:
        return self.ledger.remove_token(model_id, kind)

    def get_token_counts(self, model_id: str) -> dict[str, int]:
        return self.ledger.get_token_counts(model_id)

    def add_hindrance(self, model_id: str, kind: TokenKind | str) -> Hindrances:
        return self.hindrance.add_hindrance(model_id, kind)

    def remove_hindrance(self, model_id: str, kind: TokenKind | str) -> Hindrances:
        return self.hindrance.remove_hindrance(model_id, kind)

    def get_hindrances(self, model_id: str) -> Hindrances:
        self.roster.get(model_id)
        return self.hindrance.get_hindrances(model_id)

    # --- queries ----------------------------------------------------------

    def validate_los(self, model_a, model_b) -> LOSResult:
        return self.los.validate_los(self._model(model_a), self._model(model_b))

    def calculate_defensive_bonus(self, position, enemies: list) -> DefensiveBonus:
        return self.cover.calculate_defensive_bonus(position, [self._enemy(e) for e in enemies])

    def find_best_defensive_position(self, start, enemies: list, max_ap: float) -> Optional[DefensivePosition]:
        return self.cover.find_best_defensive_position(start, [self._enemy(e) for e in enemies], max_ap)

    def _enemy(self, enemy):
        """Model ids resolve to models; positions pass through."""
        return self.roster.get(enemy) if isinstance(enemy, str) else enemy

    # --- combat -----------------------------------------------------------

    def resolve_combat(self, attacker_id: str, defender_id: str,
                       attack_type: Optional[AttackType | str] = None,
                       simulate: bool = False) -> CombatReport:
        """Resolve an attack. A real attack costs the attacker 1 AP."""
        attacker = self.roster.get(attacker_id)
        defender = self.roster.get(defender_id)
        self._require_running()
        self._require_on_table(attacker)
        if defender.reserve:
            raise MissionStateError(f"{defender.identifier} is in reserve")
        if not simulate and self.available_ap(attacker_id) < 1:
            raise MissionStateError(f"{attacker.identifier} has no AP left to attack")
        report = self.combat.resolve(attacker_id, defender_id, attack_type, simulate=simulate)
        if not simulate:
            attacker.ap_spent += 1
        return report

    # --- mission ----------------------------------------------------------

    def reset(self):
        """Drop the mission, models, tokens, terrain and scores."""
        self.roster.clear()
        self.ledger.clear_all()
        self.hindrance.resync()
        self.battlefield.clear()
        self.objectives.set_objectives([])
        self.objectives.current_turn = 0
        self.victory.reset()
        self.endgame = self._new_endgame("small")
        self.history.clear()
        self.mission = None
        self.starting_counts = {Side.A: 0, Side.B: 0}
        self.bottle_tests = []
        self._refresh_bounds()

    def _build_terrain(self, mission: MissionConfig) -> Battlefield:
        """Lay the mission's terrain on a scratch battlefield, rejecting illegal pieces."""
        scratch = Battlefield(size=mission.battlefield_size)
        problems = []
        for i, entry in enumerate(self.loader.terrain_entries(mission)):
            where = f"terrain[{i}] {entry.get('type')} at ({entry.get('x')}, {entry.get('y')})"
            try:
                candidate = make_terrain(entry["type"], entry["x"], entry["y"], terrain_params(entry),
                                         entry.get("rotation", 0), self.rules)
            except (KeyError, ValueError) as e:
                problems.append(f"{where}: {e}")
                continue
            result = self.validator.is_valid_placement(candidate, scratch, scratch.size)
            if not result:
                problems.append(f"{where}: {result.reason}")
                continue
            scratch.add(candidate)
        if problems:
            raise MissionValidationError(problems)
        return scratch

    def load_mission(self, config: dict | MissionConfig) -> MissionConfig:
        """
        Validate a mission and set the battlefield up for turn 1.

        Raises MissionValidationError, leaving the session untouched, if
        the config or its terrain is invalid.
        """
        mission = config if isinstance(config, MissionConfig) else self.loader.parse(config)
        scratch = self._build_terrain(mission)

        self.reset()
        self.mission = mission
        self.battlefield.size = mission.battlefield_size
        self.validator.battlefield_size = mission.battlefield_size
        self.battlefield.replace_all(list(scratch))

        for side, side_cfg in mission.sides.items():
            positions = deployment_positions(side_cfg, mission.battlefield_size, self.rng)
            reserve = side_cfg.deployment == "reinforcements"
            turns = mission.reinforcement_turns or [DEFAULT_ARRIVAL_TURN]
            for index, (entry, position) in enumerate(zip(side_cfg.models, positions)):
                # Reserves are spread over the reinforcement turns in roster order
                arrival = turns[index % len(turns)] if reserve else None
                model = self.roster.create(
                    side, position, self.loader.profile_for(side_cfg, entry), entry.identifier,
                    height=entry.height, bp=side_cfg.bp_per_model,
                    reserve=reserve, arrival_turn=arrival,
                )
                if side_cfg.deployment == "infiltration":
                    self.ledger.add_token(model.id, TokenKind.HIDDEN, until_end_of_turn=False)

        self._refresh_bounds()
        self.starting_counts = {side: len(self.roster.by_side(side)) for side in Side}
        self.victory.initialize(self.starting_counts)
        self.endgame = self._new_endgame(mission.game_size)
        self.objectives.set_objectives(mission.objectives)
        self.objectives.default_survive_turns = mission.turn_limit or self.endgame.trigger_turn
        self.history.clear()

        logger.info(
            f"Mission loaded: {mission.name} ({mission.game_size}, {mission.battlefield_size:g} MU, "
            f"{len(self.battlefield)} terrain, {len(self.roster)} models)"
        )
        return mission

    def load_mission_file(self, path: Path | str) -> MissionConfig:
        return self.load_mission(self.loader.load_file(path))

    def start_new_turn(self) -> list[Model]:
        """
        Purge turn-scoped tokens, reset AP and bring on due reserves.

        Returns the models that arrived.
        """
        self._require_running()
        self.ledger.start_new_turn()
        # Edits from an earlier turn cannot be undone
        self.history.clear()
        for model in self.roster:
            model.ap_spent = 0.0

        arrived = []
        for model in self.roster:
            if model.reserve and model.arrival_turn is not None and self.current_turn >= model.arrival_turn:
                model.reserve = False
                arrived.append(model)
        if arrived:
            logger.info(f"Turn {self.current_turn}: {len(arrived)} reinforcements arrive")
        return arrived

    def check_objectives(self) -> ObjectiveStatus:
        """Evaluate objectives and award points for newly completed ones."""
        self._require_mission()
        status = self.objectives.check_objectives(self.roster, self.ledger)
        for completion in status.newly_completed:
            self._award(completion)
        return status

    def complete_objective(self, objective_id: str, side: Optional[Side | str] = None) -> Optional[Completion]:
        """Mark a scripted objective complete (destroy, escort, capture, intercept)."""
        self._require_mission()
        completion = self.objectives.complete_objective(objective_id, Side(side) if side else None)
        if completion is not None:
            self._award(completion)
        return completion

    def _award(self, completion: Completion):
        self.victory.award_objective(completion.objective_id, completion.side, completion.points)

    def _ordered_counts(self) -> dict[Side, int]:
        return {
            side: sum(
                1 for m in self.roster.by_side(side)
                if not self.ledger.is_out_of_action(m.id) and self.hindrance.is_ordered(m.id)
            )
            for side in Side
        }

    def process_end_of_turn(self) -> TurnEndReport:
        """Score the turn and advance the end-game state machine."""
        self._require_mission()
        self._require_running()

        self.objectives.record_turn_end(self.roster, self.ledger)
        active_counts = {
            side: sum(1 for m in self.roster.by_side(side) if not self.ledger.is_out_of_action(m.id))
            for side in Side
        }
        end_game = self.endgame.process_end_of_turn(active_counts, self.starting_counts)
        self.objectives.current_turn = self.endgame.turn

        status = self.check_objectives()
        active_ids = {m.id for m in self.active_models()}
        self.victory.check_aggression(list(self.roster), active_ids)
        self.victory.check_bottled(self._ordered_counts())

        if not self.endgame.ended:
            limit = self.mission.turn_limit
            if limit is not None and self.endgame.turn >= limit:
                self.endgame.end(TURN_LIMIT)
        if not self.endgame.ended:
            for side in Side:
                minimum = self.mission.minimum_points(side)
                if minimum and self.victory.current_vp(side) >= minimum:
                    self.endgame.end(VICTORY_CONDITIONS)
                    break

        return TurnEndReport(
            end_game=end_game,
            objectives=status,
            vp={side.value: self.victory.current_vp(side) for side in Side},
            ended=self.endgame.ended,
            reason=self.endgame.reason,
        )

    def get_mission_result(self) -> VictoryResult:
        return self.victory.get_final_result(reason=self.endgame.reason)

    # --- state ------------------------------------------------------------

    def to_dict(self) -> dict:
        """Read-only snapshot for UI and log consumers."""
        return {
            "mission": self.mission.to_dict() if self.mission else None,
            "turn": self.current_turn,
            "battlefield": {
                "size": self.battlefield.size,
                "revision": self.battlefield.revision,
                "terrain": [t.to_dict() for t in self.battlefield],
            },
            "models": [
                {**m.to_dict(), "tokens": self.ledger.get_token_counts(m.id)}
                for m in self.roster
            ],
            "objectives": [
                {**o.to_dict(), "completed": o.id in self.objectives.completed}
                for o in self.objectives.objectives
            ],
            "end_game": self.endgame.to_dict(),
            "vp": {side.value: self.victory.current_vp(side) for side in Side},
            "rp": {side.value: self.victory.sides[side].rp for side in Side},
            "can_undo": self.history.can_undo(),
            "can_redo": self.history.can_redo(),
            "token_table": {name: spec.physical() for name, spec in self.rules.tokens.items()},
            "resource_tokens": {name: dict(info) for name, info in self.rules.resource_tokens.items()},
        }
