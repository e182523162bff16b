"""
Rules constants for the MEST QSR engine.

Values are read from data/rules.yaml. Anything missing from the file
falls back to the defaults defined here.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

INF = float("inf")


@dataclass
class HillSize:
    """Footprint and height of one hill size category."""
    plateau_radius: float
    total_radius: float
    elevation: float


@dataclass
class GameSize:
    """Per game-size constants."""
    end_game_turn: int
    bp: int
    min_models: int
    max_models: int
    battlefield: float  # side length in MU


@dataclass
class BoxSize:
    width: float
    depth: float
    height: float


@dataclass
class TokenSpec:
    """Rules behaviour and physical description of a token type."""
    name: str
    category: str  # "status", "hindrance", "marker"
    stackable: bool = True
    duration: str = "permanent"  # "turn" or "permanent"
    diameter_mm: float = 15.24
    thickness_mm: float = 2.0
    color: Optional[str] = None
    shape: str = "disc"

    @property
    def turn_scoped(self) -> bool:
        return self.duration == "turn"

    def physical(self) -> dict:
        """Physical sizing passed through to presentation layers."""
        return {
            "diameter_mm": self.diameter_mm,
            "thickness_mm": self.thickness_mm,
            "color": self.color,
            "shape": self.shape,
            "stackable": self.stackable,
        }


DEFAULT_HILLS = {
    "small": (2.0, 4.0, 1.0),
    "medium": (4.0, 7.0, 2.0),
    "large": (6.0, 10.0, 3.0),
}

DEFAULT_GAME_SIZES = {
    "small": (4, 500, 4, 8, 24.0),
    "medium": (6, 750, 6, 12, 36.0),
    "large": (8, 1000, 8, 16, 48.0),
}

# name: (category, stackable, duration, diameter, thickness, color, shape)
DEFAULT_TOKENS = {
    "done": ("status", True, "turn", 18.0, 6.0, "blue", "disc"),
    "wait": ("status", True, "turn", 18.0, 3.0, "white", "disc"),
    "hidden": ("status", True, "turn", 15.24, 2.0, "dark", "disc"),
    "wound": ("hindrance", True, "permanent", 15.24, 2.0, "red", "disc"),
    "delay": ("hindrance", True, "turn", 15.24, 2.0, "white", "disc"),
    "fear": ("hindrance", True, "permanent", 15.24, 2.0, "yellow", "disc"),
    "ko": ("marker", False, "permanent", 15.24, 2.0, None, "triangle"),
    "eliminated": ("marker", False, "permanent", 15.24, 2.0, None, "triangle"),
    "outOfAmmo": ("marker", True, "permanent", 19.05, 2.0, "white", "disc"),
}


@dataclass
class RulesConfig:
    """All tunable rules constants in one place."""
    ap_per_turn: int = 2
    grid_resolution: float = 0.5
    movement_costs: dict[str, float] = field(default_factory=lambda: {
        "clear": 1.0, "rough": 2.0, "difficult": 3.0, "impassable": INF,
    })
    los_short_range: float = 8.0
    eye_height: float = 0.5
    elevation_advantage: float = 0.5
    terrain_radii: dict[str, float] = field(default_factory=lambda: {
        "tree_single": 0.5, "tree_cluster": 3.0, "tree_stand": 6.0, "debris": 1.0,
    })
    terrain_heights: dict[str, float] = field(default_factory=lambda: {
        "tree_single": 4.0, "tree_cluster": 5.0, "tree_stand": 7.0, "debris": 0.5,
    })
    building: BoxSize = field(default_factory=lambda: BoxSize(4.0, 4.0, 3.0))
    wall: BoxSize = field(default_factory=lambda: BoxSize(4.0, 0.5, 1.2))
    hills: dict[str, HillSize] = field(default_factory=lambda: {
        k: HillSize(*v) for k, v in DEFAULT_HILLS.items()
    })
    game_sizes: dict[str, GameSize] = field(default_factory=lambda: {
        k: GameSize(*v) for k, v in DEFAULT_GAME_SIZES.items()
    })
    additional_end_dice_turns: list[int] = field(default_factory=lambda: [4, 6, 8])
    end_die_miss: int = 3
    tokens: dict[str, TokenSpec] = field(default_factory=lambda: {
        k: TokenSpec(k, *v) for k, v in DEFAULT_TOKENS.items()
    })
    resource_tokens: dict[str, dict] = field(default_factory=lambda: {
        "initiative": {"diameter_mm": 31.75, "thickness_mm": 2.0, "color": "gold"},
        "victory": {"diameter_mm": 31.75, "thickness_mm": 2.0, "color": "gold"},
    })
    melee_range: float = 1.0
    ranged_range: float = 24.0
    cover_penalty: dict[str, int] = field(default_factory=lambda: {
        "hard": 3, "soft": 2, "partial": 1,
    })
    elevation_hit_bonus: int = 1
    fear_difficulty: list[int] = field(default_factory=lambda: [2, 3, 4])

    @classmethod
    def load(cls, data_path: Path | str = "data") -> "RulesConfig":
        """Load rules from <data_path>/rules.yaml, keeping defaults for gaps."""
        rules = cls()
        rules_path = Path(data_path) / "rules.yaml"
        if not rules_path.exists():
            logger.debug(f"No rules file at {rules_path}, using defaults")
            return rules

        with open(rules_path) as f:
            data = yaml.safe_load(f) or {}

        movement = data.get("movement", {})
        rules.ap_per_turn = movement.get("ap_per_turn", rules.ap_per_turn)
        rules.grid_resolution = movement.get("grid_resolution_mu", rules.grid_resolution)
        for cls_name, cost in movement.get("costs", {}).items():
            rules.movement_costs[cls_name] = float(cost)

        los = data.get("los", {})
        rules.los_short_range = los.get("short_range_mu", rules.los_short_range)
        rules.eye_height = los.get("eye_height_mu", rules.eye_height)
        rules.elevation_advantage = data.get("elevation", {}).get(
            "advantage_threshold_mu", rules.elevation_advantage)

        terrain = data.get("terrain", {})
        rules.terrain_radii.update(terrain.get("radii", {}))
        rules.terrain_heights.update(terrain.get("heights", {}))
        for key in ("building", "wall"):
            if key in terrain:
                box = getattr(rules, key)
                setattr(rules, key, BoxSize(
                    width=terrain[key].get("width", box.width),
                    depth=terrain[key].get("depth", box.depth),
                    height=terrain[key].get("height", box.height),
                ))
        for size, info in terrain.get("hills", {}).items():
            rules.hills[size] = HillSize(
                plateau_radius=info["plateau_radius"],
                total_radius=info["total_radius"],
                elevation=info["elevation"],
            )

        for size, info in data.get("game_sizes", {}).items():
            rules.game_sizes[size] = GameSize(
                end_game_turn=info["end_game_turn"],
                bp=info["bp"],
                min_models=info.get("min_models", 4),
                max_models=info.get("max_models", 16),
                battlefield=info.get("battlefield", 24),
            )

        end_game = data.get("end_game", {})
        rules.additional_end_dice_turns = list(
            end_game.get("additional_dice_turns", rules.additional_end_dice_turns))
        rules.end_die_miss = end_game.get("miss_threshold", rules.end_die_miss)

        for name, info in data.get("tokens", {}).items():
            if name not in rules.tokens:
                logger.warning(f"Unknown token type in rules data: {name}")
                continue
            rules.tokens[name] = TokenSpec(
                name=name,
                category=info.get("category", rules.tokens[name].category),
                stackable=info.get("stackable", True),
                duration=info.get("duration", "permanent"),
                diameter_mm=info.get("diameter_mm", 15.24),
                thickness_mm=info.get("thickness_mm", 2.0),
                color=info.get("color"),
                shape=info.get("shape", "disc"),
            )
        rules.resource_tokens.update(data.get("resource_tokens", {}))

        combat = data.get("combat", {})
        rules.melee_range = combat.get("melee_range_mu", rules.melee_range)
        rules.ranged_range = combat.get("ranged_range_mu", rules.ranged_range)
        rules.cover_penalty.update(combat.get("cover_penalty", {}))
        rules.elevation_hit_bonus = combat.get("elevation_bonus", rules.elevation_hit_bonus)
        rules.fear_difficulty = list(combat.get("fear_difficulty", rules.fear_difficulty))

        return rules

    def movement_cost(self, terrain_class: str) -> float:
        """AP per MU for a terrain class. Unknown classes are an error."""
        return self.movement_costs[terrain_class]

    def end_game_turn(self, game_size: str) -> int:
        return self.game_sizes[game_size].end_game_turn

    def game_size_for_bp(self, bp: int) -> str:
        """Smallest game size whose BP budget covers bp."""
        for name, info in sorted(self.game_sizes.items(), key=lambda kv: kv[1].bp):
            if bp <= info.bp:
                return name
        return max(self.game_sizes, key=lambda name: self.game_sizes[name].bp)
