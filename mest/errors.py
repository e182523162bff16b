"""
Exception types for the MEST QSR rules engine.

Expected outcomes (failed placement, no path, contested objective) are
returned as values. These exceptions are reserved for malformed input and
broken invariants.
"""


class MestError(Exception):
    """Base class for all rules-engine errors."""


class MissionValidationError(MestError, ValueError):
    """Mission configuration rejected before any state was touched."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("Invalid mission: " + "; ".join(self.problems))


class UnknownModelError(MestError, KeyError):
    """Command issued against a model id that is not in the roster."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(model_id)

    def __str__(self) -> str:
        return f"Unknown model: {self.model_id}"


class UnknownTerrainError(MestError, KeyError):
    """Removal requested for a terrain id that does not exist."""

    def __init__(self, terrain_id: str):
        self.terrain_id = terrain_id
        super().__init__(terrain_id)

    def __str__(self) -> str:
        return f"Unknown terrain: {self.terrain_id}"


class StaleTerrainError(MestError, RuntimeError):
    """Spatial query issued while terrain bounds lag behind the battlefield."""


class MissionStateError(MestError, RuntimeError):
    """Command not allowed in the current mission state."""
