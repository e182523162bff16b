"""
Mission configuration: parsing, validation and deployment.

A mission is a JSON-shaped mapping (loaded from YAML or JSON). The loader
collects every problem it finds and raises a single
MissionValidationError, so nothing is built from a config that fails any
check.
"""

import math
import re
import random
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .errors import MissionValidationError
from .models import NameManager, Profile, Side
from .objectives import BOTH, ObjectiveType
from .rules import RulesConfig
from .terrain import Position, TerrainKind

logger = logging.getLogger(__name__)

DEPLOYMENTS = ("infiltration", "standard", "reinforcements", "custom")
AI_PROFILES = ("aggressive", "defensive", "cautious", "objective-focused")
WEATHER = ("clear", "fog", "rain")
TIME_OF_DAY = ("dawn", "day", "dusk", "night")

REQUIRED_FIELDS = ("name", "sideA", "sideB", "objectives", "victoryConditions")
SIDE_FIELDS = ("name", "bp", "models", "deployment", "ai")

BP_RANGE = (500, 1000)
MODEL_RANGE = (4, 16)
TURN_LIMIT_RANGE = (1, 20)
BATTLEFIELD_PATTERN = re.compile(r"^\d+x\d+$")

DEPLOYMENT_SPACING = 2.0
INFILTRATION_SPREAD = 5.0
EDGE_INSET = 4.0

SIDE_KEYS = {Side.A: "sideA", Side.B: "sideB"}


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class ModelEntry:
    """One roster slot of a side."""
    identifier: str = ""
    profile: Optional[str] = None
    position: Optional[Position] = None
    height: float = 1.0

    @classmethod
    def from_config(cls, entry) -> "ModelEntry":
        if isinstance(entry, str):
            return cls(identifier=entry)
        position = None
        if "x" in entry and "y" in entry:
            position = Position(float(entry["x"]), float(entry["y"]))
        return cls(
            identifier=entry.get("identifier", ""),
            profile=entry.get("profile"),
            position=position,
            height=float(entry.get("height", 1.0)),
        )


@dataclass
class SideConfig:
    side: Side
    name: str
    bp: int
    models: list[ModelEntry]
    deployment: str
    ai: bool
    initial_position: Position
    ai_profile: Optional[str] = None
    assembly: Optional[str] = None

    @property
    def bp_per_model(self) -> float:
        return self.bp / len(self.models) if self.models else 0.0


@dataclass
class MissionConfig:
    """A validated mission."""
    name: str
    game_size: str
    battlefield_size: float
    sides: dict[Side, SideConfig]
    description: str = ""
    terrain_preset: Optional[str] = None
    terrain_custom: list[dict] = field(default_factory=list)
    objectives: list[dict] = field(default_factory=list)
    victory_conditions: dict = field(default_factory=dict)
    special_rules: dict = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def turn_limit(self) -> Optional[int]:
        return self.special_rules.get("turnLimit")

    @property
    def reinforcement_turns(self) -> list[int]:
        return sorted(self.special_rules.get("reinforcementTurns", []))

    def minimum_points(self, side: Side) -> Optional[int]:
        return self.victory_conditions.get(SIDE_KEYS[side], {}).get("minimumPoints")

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "gameSize": self.game_size,
            "battlefield": f"{int(self.battlefield_size)}x{int(self.battlefield_size)}",
            "sides": {
                side.value: {
                    "name": cfg.name,
                    "bp": cfg.bp,
                    "models": len(cfg.models),
                    "deployment": cfg.deployment,
                    "ai": cfg.ai,
                    "aiProfile": cfg.ai_profile,
                }
                for side, cfg in self.sides.items()
            },
            "objectives": list(self.objectives),
            "specialRules": dict(self.special_rules),
        }


class MissionLoader:
    """
    Validates mission configs against the mission schema and game-size rules.

    With strict_bp=True a side whose BP differs from its game size's budget
    is rejected; otherwise it is logged as a warning.
    """

    def __init__(self, rules: Optional[RulesConfig] = None, strict_bp: bool = False,
                 profiles: Optional[dict[str, Profile]] = None,
                 presets: Optional[dict] = None):
        self.rules = rules or RulesConfig()
        self.strict_bp = strict_bp
        self.profiles = profiles or {"Average": Profile()}
        self.presets = presets or {}

    @staticmethod
    def load_presets(data_path: Path | str = "data") -> dict:
        path = Path(data_path) / "terrain_presets.yaml"
        if not path.exists():
            return {}
        with open(path) as f:
            return yaml.safe_load(f) or {}

    def load_file(self, path: Path | str) -> MissionConfig:
        """Parse a YAML or JSON mission file."""
        with open(path) as f:
            config = yaml.safe_load(f)
        if not isinstance(config, dict):
            raise MissionValidationError([f"{path}: mission must be a mapping"])
        return self.parse(config)

    # --- validation -------------------------------------------------------

    def _validate_side(self, key: str, cfg, problems: list[str]):
        if not isinstance(cfg, dict):
            problems.append(f"{key} must be an object")
            return
        for name in SIDE_FIELDS:
            if name not in cfg:
                problems.append(f"{key}.{name} is required")

        bp = cfg.get("bp")
        if bp is not None and (not _is_int(bp) or not BP_RANGE[0] <= bp <= BP_RANGE[1]):
            problems.append(f"{key}.bp must be an integer between {BP_RANGE[0]} and {BP_RANGE[1]}")

        models = cfg.get("models")
        if models is not None:
            if not isinstance(models, list):
                problems.append(f"{key}.models must be a list")
            elif not MODEL_RANGE[0] <= len(models) <= MODEL_RANGE[1]:
                problems.append(
                    f"{key}.models must have {MODEL_RANGE[0]}-{MODEL_RANGE[1]} entries, got {len(models)}")
            else:
                for i, entry in enumerate(models):
                    if not isinstance(entry, (str, dict)):
                        problems.append(f"{key}.models[{i}] must be a string or an object")
                    elif isinstance(entry, dict) and entry.get("profile") \
                            and entry["profile"] not in self.profiles:
                        problems.append(f"{key}.models[{i}]: unknown profile {entry['profile']!r}")

        deployment = cfg.get("deployment")
        if deployment is not None and deployment not in DEPLOYMENTS:
            problems.append(f"{key}.deployment must be one of {', '.join(DEPLOYMENTS)}")
        if "ai" in cfg and not isinstance(cfg["ai"], bool):
            problems.append(f"{key}.ai must be a boolean")
        if cfg.get("aiProfile") is not None and cfg["aiProfile"] not in AI_PROFILES:
            problems.append(f"{key}.aiProfile must be one of {', '.join(AI_PROFILES)}")
        if cfg.get("assembly") is not None and cfg["assembly"] not in self.profiles:
            problems.append(f"{key}.assembly: unknown profile {cfg['assembly']!r}")

        pos = cfg.get("initialPosition")
        if pos is not None:
            if not isinstance(pos, dict) or not all(_is_number(pos.get(a)) for a in ("x", "y")):
                problems.append(f"{key}.initialPosition needs numeric x and y")

    def _validate_identifiers(self, config: dict, problems: list[str]):
        """Custom identifiers must be usable and unique across both sides."""
        seen: set[str] = set()
        for key in SIDE_KEYS.values():
            side_cfg = config.get(key)
            if not isinstance(side_cfg, dict) or not isinstance(side_cfg.get("models"), list):
                continue
            for entry in side_cfg["models"]:
                if not isinstance(entry, (str, dict)):
                    continue
                raw = entry if isinstance(entry, str) else entry.get("identifier", "")
                if not raw:
                    continue
                name = NameManager.sanitize(raw)
                if not name:
                    problems.append(f"{key}: identifier {raw!r} has no alphanumeric characters")
                elif name in seen:
                    problems.append(f"{key}: identifier {name!r} is used more than once")
                seen.add(name)

    def _validate_terrain(self, terrain, problems: list[str]):
        if not isinstance(terrain, dict):
            problems.append("terrain must be an object")
            return
        preset = terrain.get("preset")
        if preset is not None and preset not in self.presets:
            problems.append(f"terrain.preset: unknown preset {preset!r}")
        kinds = {k.value for k in TerrainKind}
        for i, item in enumerate(terrain.get("custom") or []):
            if not isinstance(item, dict):
                problems.append(f"terrain.custom[{i}] must be an object")
                continue
            for name in ("type", "x", "y"):
                if name not in item:
                    problems.append(f"terrain.custom[{i}].{name} is required")
            if "type" in item and item["type"] not in kinds:
                problems.append(f"terrain.custom[{i}].type: unknown terrain type {item['type']!r}")
            for name in ("x", "y", "rotation", "plateauRadiusMU", "totalRadiusMU"):
                if name in item and not _is_number(item[name]):
                    problems.append(f"terrain.custom[{i}].{name} must be a number")

    def _validate_objectives(self, objectives, problems: list[str]):
        if not isinstance(objectives, list):
            problems.append("objectives must be a list")
            return
        types = {t.value for t in ObjectiveType}
        sides = {Side.A.value, Side.B.value, BOTH}
        for i, obj in enumerate(objectives):
            where = f"objectives[{i}]"
            if not isinstance(obj, dict):
                problems.append(f"{where} must be an object")
                continue
            if obj.get("type") not in types:
                problems.append(f"{where}.type must be one of {', '.join(sorted(types))}")
            points = obj.get("points")
            if not _is_int(points) or points < 1:
                problems.append(f"{where}.points must be an integer >= 1")
            side = obj.get("side")
            if side is not None and side not in sides:
                problems.append(f"{where}.side must be side-a, side-b or both")
            if side == BOTH and obj.get("type") != ObjectiveType.CONTROL.value:
                problems.append(f"{where}: side 'both' is only meaningful for control objectives")
            duration = obj.get("duration")
            if duration is not None and (not _is_int(duration) or duration < 1):
                problems.append(f"{where}.duration must be an integer >= 1")
            turns = obj.get("turns")
            if turns is not None and (not _is_int(turns) or turns < 1):
                problems.append(f"{where}.turns must be an integer >= 1")
            location = obj.get("location")
            if obj.get("type") == ObjectiveType.CONTROL.value and location is None:
                problems.append(f"{where}: control objectives need a location")
            if location is not None:
                if not isinstance(location, dict) or not all(
                        _is_number(location.get(a)) for a in ("x", "y", "radius")):
                    problems.append(f"{where}.location needs numeric x, y and radius")

    def _validate_victory(self, victory, problems: list[str]):
        if not isinstance(victory, dict):
            problems.append("victoryConditions must be an object")
            return
        for key in SIDE_KEYS.values():
            cond = victory.get(key)
            if cond is None:
                problems.append(f"victoryConditions.{key} is required")
                continue
            if not isinstance(cond, dict):
                problems.append(f"victoryConditions.{key} must be an object")
                continue
            for name in ("primary", "secondary"):
                if name in cond and not isinstance(cond[name], list):
                    problems.append(f"victoryConditions.{key}.{name} must be a list")
            minimum = cond.get("minimumPoints")
            if minimum is not None and (not _is_int(minimum) or minimum < 0):
                problems.append(f"victoryConditions.{key}.minimumPoints must be a non-negative integer")

    def _validate_special_rules(self, special, problems: list[str]):
        if not isinstance(special, dict):
            problems.append("specialRules must be an object")
            return
        limit = special.get("turnLimit")
        if limit is not None and (not _is_int(limit)
                                  or not TURN_LIMIT_RANGE[0] <= limit <= TURN_LIMIT_RANGE[1]):
            problems.append(
                f"specialRules.turnLimit must be an integer between {TURN_LIMIT_RANGE[0]} and {TURN_LIMIT_RANGE[1]}")
        turns = special.get("reinforcementTurns")
        if turns is not None and (not isinstance(turns, list) or not all(_is_int(t) and t >= 1 for t in turns)):
            problems.append("specialRules.reinforcementTurns must be a list of turn numbers")
        if special.get("weather") is not None and special["weather"] not in WEATHER:
            problems.append(f"specialRules.weather must be one of {', '.join(WEATHER)}")
        if special.get("timeOfDay") is not None and special["timeOfDay"] not in TIME_OF_DAY:
            problems.append(f"specialRules.timeOfDay must be one of {', '.join(TIME_OF_DAY)}")
        if "customRules" in special and not isinstance(special["customRules"], list):
            problems.append("specialRules.customRules must be a list")

    def _battlefield_size(self, config: dict, game_size: Optional[str], problems: list[str]) -> float:
        value = config.get("battlefield")
        if value is None:
            return self.rules.game_sizes[game_size].battlefield if game_size else 24.0
        if not isinstance(value, str) or not BATTLEFIELD_PATTERN.match(value):
            problems.append(f"battlefield must look like '24x24', got {value!r}")
            return 24.0
        width, height = (int(v) for v in value.split("x"))
        if width != height:
            problems.append(f"battlefield must be square, got {value}")
        if width <= 0:
            problems.append("battlefield size must be positive")
        return float(width)

    def validate(self, config: dict) -> tuple[list[str], list[str]]:
        """Return (problems, warnings) for a raw mission config."""
        problems: list[str] = []
        warnings: list[str] = []
        for name in REQUIRED_FIELDS:
            if name not in config:
                problems.append(f"{name} is required")
        if "name" in config and not isinstance(config["name"], str):
            problems.append("name must be a string")

        game_size = config.get("gameSize")
        if game_size is not None and game_size not in self.rules.game_sizes:
            problems.append(f"gameSize must be one of {', '.join(self.rules.game_sizes)}")
            game_size = None

        for side, key in SIDE_KEYS.items():
            if key in config:
                self._validate_side(key, config[key], problems)
        self._validate_identifiers(config, problems)
        self._battlefield_size(config, game_size, problems)
        if "terrain" in config:
            self._validate_terrain(config["terrain"], problems)
        if "objectives" in config:
            self._validate_objectives(config["objectives"], problems)
        if "victoryConditions" in config:
            self._validate_victory(config["victoryConditions"], problems)
        if "specialRules" in config:
            self._validate_special_rules(config["specialRules"], problems)

        if game_size:
            expected = self.rules.game_sizes[game_size].bp
            for key in SIDE_KEYS.values():
                bp = config.get(key, {}).get("bp") if isinstance(config.get(key), dict) else None
                if _is_int(bp) and bp != expected:
                    message = f"{key}.bp is {bp} but a {game_size} game expects {expected} BP"
                    (problems if self.strict_bp else warnings).append(message)
        return problems, warnings

    # --- parsing ----------------------------------------------------------

    def _default_position(self, side: Side, battlefield_size: float) -> Position:
        x = battlefield_size / 2 - EDGE_INSET
        return Position(-x if side == Side.A else x, 0.0)

    def _side_config(self, side: Side, cfg: dict, battlefield_size: float) -> SideConfig:
        pos = cfg.get("initialPosition")
        initial = Position.from_any(pos) if pos else self._default_position(side, battlefield_size)
        return SideConfig(
            side=side,
            name=cfg["name"],
            bp=cfg["bp"],
            models=[ModelEntry.from_config(m) for m in cfg["models"]],
            deployment=cfg["deployment"],
            ai=cfg["ai"],
            initial_position=initial,
            ai_profile=cfg.get("aiProfile"),
            assembly=cfg.get("assembly"),
        )

    def parse(self, config: dict) -> MissionConfig:
        """Validate and build a MissionConfig. Raises MissionValidationError."""
        problems, warnings = self.validate(config)
        if problems:
            raise MissionValidationError(problems)
        for message in warnings:
            logger.warning(f"Mission {config['name']!r}: {message}")

        game_size = config.get("gameSize")
        if game_size is None:
            game_size = self.rules.game_size_for_bp(max(config["sideA"]["bp"], config["sideB"]["bp"]))
            logger.info(f"Mission {config['name']!r}: no gameSize given, using {game_size}")
        battlefield_size = self._battlefield_size(config, game_size, [])

        terrain = config.get("terrain") or {}
        return MissionConfig(
            name=config["name"],
            description=config.get("description", ""),
            game_size=game_size,
            battlefield_size=battlefield_size,
            sides={
                side: self._side_config(side, config[key], battlefield_size)
                for side, key in SIDE_KEYS.items()
            },
            terrain_preset=terrain.get("preset"),
            terrain_custom=list(terrain.get("custom") or []),
            objectives=list(config["objectives"]),
            victory_conditions=dict(config["victoryConditions"]),
            special_rules=dict(config.get("specialRules") or {}),
            warnings=warnings,
        )

    def terrain_entries(self, mission: MissionConfig) -> list[dict]:
        """Preset entries followed by the mission's custom entries."""
        entries = []
        if mission.terrain_preset:
            entries.extend(self.presets[mission.terrain_preset].get("terrain") or [])
        entries.extend(mission.terrain_custom)
        return entries

    def profile_for(self, side_cfg: SideConfig, entry: ModelEntry) -> Profile:
        name = entry.profile or side_cfg.assembly or "Average"
        return self.profiles.get(name, Profile())


def terrain_params(entry: dict) -> dict:
    """Type-specific parameters of a terrain entry, for make_terrain."""
    params = {k: v for k, v in entry.items() if k not in ("type", "x", "y", "rotation", "id")}
    size = params.get("size")
    if isinstance(size, dict):
        # Rectangular kinds give their dimensions as a size object
        params.pop("size")
        params.update(size)
    return params


def clamp(position: Position, battlefield_size: float) -> Position:
    half = battlefield_size / 2
    return Position(min(max(position.x, -half), half), min(max(position.y, -half), half))


def deployment_positions(
    side_cfg: SideConfig,
    battlefield_size: float,
    rng: Optional[random.Random] = None,
) -> list[Position]:
    """
    Starting position of every model of a side.

    standard: a grid at 2 MU spacing around the initial position.
    infiltration: scattered up to 2.5 MU either way on each axis.
    reinforcements and custom: the initial position, unless an entry
    gives its own x/y.
    """
    rng = rng or random.Random()
    base = side_cfg.initial_position
    total = len(side_cfg.models)
    positions = []
    for index, entry in enumerate(side_cfg.models):
        if entry.position is not None:
            positions.append(clamp(entry.position, battlefield_size))
            continue
        if side_cfg.deployment == "standard":
            rows = math.ceil(math.sqrt(total))
            cols = math.ceil(total / rows)
            row, col = divmod(index, cols)
            position = Position(
                base.x + (col - cols / 2) * DEPLOYMENT_SPACING,
                base.y + (row - rows / 2) * DEPLOYMENT_SPACING,
            )
        elif side_cfg.deployment == "infiltration":
            position = Position(
                base.x + (rng.random() - 0.5) * INFILTRATION_SPREAD,
                base.y + (rng.random() - 0.5) * INFILTRATION_SPREAD,
            )
        else:
            position = base
        positions.append(clamp(position, battlefield_size))
    return positions
