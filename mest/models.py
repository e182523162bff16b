"""
Combatants: sides, profiles, models and the roster that owns them.
"""

import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

import yaml

from .errors import UnknownModelError
from .terrain import Position

logger = logging.getLogger(__name__)


class Side(Enum):
    A = "side-a"
    B = "side-b"

    @property
    def opponent(self) -> "Side":
        return Side.B if self == Side.A else Side.A

    @property
    def advance(self) -> int:
        """Direction of advance along x: side-a deploys west, side-b east."""
        return 1 if self == Side.A else -1


@dataclass
class Profile:
    """Combat statistics of a model."""
    name: str = "Average"
    cca: int = 2  # close combat ability
    rca: int = 2  # ranged combat ability
    ref: int = 2  # reflexes
    int_: int = 2  # intelligence
    pow_: int = 2  # willpower
    str_: int = 2  # strength
    for_: int = 2  # fortitude
    mov: int = 2
    siz: int = 3
    bp: int = 30

    def to_dict(self) -> dict:
        return {
            "name": self.name, "cca": self.cca, "rca": self.rca, "ref": self.ref,
            "mov": self.mov, "siz": self.siz, "bp": self.bp,
        }


# Stat names that collide with Python builtins or keywords
RESERVED_STATS = {"int": "int_", "pow": "pow_", "str": "str_", "for": "for_"}


def load_profiles(data_path: Path | str = "data") -> dict[str, Profile]:
    """Archetype profiles from <data_path>/profiles.yaml."""
    profiles = {"Average": Profile()}
    path = Path(data_path) / "profiles.yaml"
    if not path.exists():
        return profiles

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    for name, stats in data.get("profiles", {}).items():
        stats = {RESERVED_STATS.get(k, k): v for k, v in stats.items()}
        profiles[name] = Profile(name=name, **stats)
    return profiles


@dataclass
class Model:
    """A single combatant on the battlefield."""
    id: str
    side: Side
    identifier: str
    position: Position
    profile: Profile = field(default_factory=Profile)
    height: float = 1.0
    ap_spent: float = 0.0
    status: list[str] = field(default_factory=list)
    bp: float = 0.0
    reserve: bool = False
    arrival_turn: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "side": self.side.value,
            "identifier": self.identifier,
            "x": round(self.position.x, 4),
            "y": round(self.position.y, 4),
            "height": self.height,
            "profile": self.profile.to_dict(),
            "ap_spent": self.ap_spent,
            "status": list(self.status),
            "bp": self.bp,
            "reserve": self.reserve,
        }


class NameManager:
    """
    Display identifiers for models.

    Canonical letters come from a per-side pool: side-a takes A..N in order,
    side-b takes Z..M in descending order. Custom identifiers are stripped
    to alphanumerics, cut to 12 characters and must be unique across both
    sides.
    """

    MAX_LENGTH = 12
    POOLS = {
        Side.A: list("ABCDEFGHIJKLMN"),
        Side.B: list("ZYXWVUTSRQPONM"),
    }

    def __init__(self):
        self.used: set[str] = set()

    def reset(self):
        self.used.clear()

    @classmethod
    def sanitize(cls, name: str) -> str:
        return re.sub(r"[^A-Za-z0-9]", "", name or "")[:cls.MAX_LENGTH]

    def next_canonical(self, side: Side) -> str:
        for letter in self.POOLS[side]:
            if letter not in self.used:
                self.used.add(letter)
                return letter
        # Pool exhausted: fall back to numbered identifiers
        n = 1
        prefix = "A" if side == Side.A else "Z"
        while f"{prefix}{n}" in self.used:
            n += 1
        self.used.add(f"{prefix}{n}")
        return f"{prefix}{n}"

    def assign(self, side: Side, proposed: str = "") -> str:
        """Claim an identifier: the proposed custom name, or the next letter."""
        if not proposed:
            return self.next_canonical(side)
        name = self.sanitize(proposed)
        if not name:
            raise ValueError(f"Identifier {proposed!r} has no alphanumeric characters")
        if name in self.used:
            raise ValueError(f"Identifier {name!r} is already in use")
        self.used.add(name)
        return name

    def release(self, name: str):
        self.used.discard(name)

    def is_available(self, name: str) -> bool:
        name = self.sanitize(name)
        return bool(name) and name not in self.used


class ModelRoster:
    """All models of a session, indexed by id."""

    def __init__(self):
        self.models: dict[str, Model] = {}
        self.names = NameManager()
        self._counter = 0

    def __iter__(self) -> Iterator[Model]:
        return iter(list(self.models.values()))

    def __len__(self) -> int:
        return len(self.models)

    def __contains__(self, model_id: str) -> bool:
        return model_id in self.models

    def clear(self):
        self.models.clear()
        self.names.reset()
        self._counter = 0

    def create(
        self,
        side: Side,
        position: Position,
        profile: Optional[Profile] = None,
        identifier: str = "",
        **kwargs,
    ) -> Model:
        self._counter += 1
        model = Model(
            id=f"{side.value}-{self._counter}",
            side=side,
            identifier=self.names.assign(side, identifier),
            position=position,
            profile=profile or Profile(),
            **kwargs,
        )
        self.models[model.id] = model
        return model

    def add(self, model: Model) -> Model:
        self.models[model.id] = model
        self.names.used.add(model.identifier)
        return model

    def remove(self, model_id: str) -> Model:
        model = self.get(model_id)
        del self.models[model_id]
        self.names.release(model.identifier)
        return model

    def get(self, model_id: str) -> Model:
        model = self.models.get(model_id)
        if model is None:
            raise UnknownModelError(model_id)
        return model

    def find(self, model_id: str) -> Optional[Model]:
        return self.models.get(model_id)

    def by_identifier(self, identifier: str) -> Optional[Model]:
        for model in self.models.values():
            if model.identifier == identifier:
                return model
        return None

    def by_side(self, side: Side) -> list[Model]:
        return [m for m in self.models.values() if m.side == side]
