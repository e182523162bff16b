"""
Headless mission runner for MEST QSR.

Plays a mission AI against AI until it ends and writes a JSON game log.
"""

import json
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv

from mest import BattleSession, Side
from agents import HeuristicAgent, LLMAgent, TacticalAgent

load_dotenv(Path(__file__).parent / ".env")

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Hard stop for missions without a turn limit whose END dice keep missing
MAX_TURNS = 20


class MissionSimulation:
    """Runs one mission between two agents."""

    def __init__(
        self,
        mission: str = "skirmish_small",
        data_path: str = "data",
        log_dir: str = "logs",
        seed: Optional[int] = None,
        use_llm: bool = False,
        strict_bp: bool = False,
    ):
        self.data_path = Path(data_path)
        self.mission_name = mission
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(exist_ok=True)
        self.use_llm = use_llm

        logger.info("Initializing battle session...")
        self.session = BattleSession(data_path=self.data_path, rng_seed=seed, strict_bp=strict_bp)
        self.agents: dict[Side, TacticalAgent] = {}

        self.game_log: list[dict] = []
        self.start_time: Optional[datetime] = None

    def _mission_path(self) -> Path:
        path = Path(self.mission_name)
        if path.suffix in (".yaml", ".yml", ".json") and path.exists():
            return path
        return self.data_path / "missions" / f"{self.mission_name}.yaml"

    def _make_agent(self, side: Side) -> TacticalAgent:
        profile = self.session.mission.sides[side].ai_profile
        if self.use_llm and self.session.mission.sides[side].ai:
            return LLMAgent.create_default(side.value, profile)
        return HeuristicAgent.create_default(side.value, profile)

    def initialize(self):
        """Load the mission and create one agent per side."""
        path = self._mission_path()
        logger.info(f"Loading mission: {path}")
        mission = self.session.load_mission_file(path)
        self.agents = {side: self._make_agent(side) for side in Side}
        self.start_time = datetime.now()

        self._log_event("game_start", {
            "mission": mission.to_dict(),
            "terrain": [t.to_dict() for t in self.session.battlefield],
            "models": [m.to_dict() for m in self.session.roster],
            "warnings": mission.warnings,
        })

        logger.info("Game initialized")
        for side in Side:
            logger.info(f"  {mission.sides[side].name}: {len(self.session.roster.by_side(side))} models")

    def run_turn(self) -> dict:
        """Activate both sides, then process the turn-end."""
        turn = self.session.current_turn
        logger.info(f"--- turn {turn} ---")

        actions = {}
        for side in Side:
            if self.session.is_over:
                break
            actions[side.value] = self.agents[side].take_turn(self.session)
            logger.info(f"{side.value}: {len(actions[side.value])} actions")

        report = self.session.process_end_of_turn()
        if not report.ended:
            self.session.start_new_turn()

        turn_log = {
            "turn": turn,
            "actions": actions,
            "end_of_turn": report.to_dict(),
            "positions": {m.id: m.position.to_dict() for m in self.session.roster},
        }
        self._log_event("turn_complete", turn_log)

        logger.info(f"Turn {turn} VP: {report.vp}, END dice rolled: {report.end_game.rolls}")
        if report.ended:
            logger.info(f"Mission over after turn {turn}: {report.reason}")
        return turn_log

    def run_game(self, max_turns: Optional[int] = None) -> dict:
        """Run the mission to its end."""
        self.initialize()
        max_turns = max_turns or MAX_TURNS

        while not self.session.is_over and self.session.endgame.turn < max_turns:
            self.run_turn()

        results = self._compile_results()
        self._log_event("game_end", results)
        self._save_game_log()
        return results

    def _compile_results(self) -> dict:
        result = self.session.get_mission_result()
        return {
            "mission": self.session.mission.name,
            "turns_played": self.session.endgame.turn,
            "winner": result.winner or "draw",
            "reason": result.reason or "turn_cap",
            "final_vp": result.vp,
            "final_rp": result.rp,
            "breakdown": result.breakdown,
            "surviving_models": {side.value: len(self.session.active_models(side)) for side in Side},
            "duration": str(datetime.now() - self.start_time) if self.start_time else None,
        }

    def _log_event(self, event_type: str, data: dict):
        self.game_log.append({
            "event": event_type,
            "turn": self.session.current_turn,
            "at": datetime.now().isoformat(timespec="seconds"),
            "data": data,
        })

    def _save_game_log(self) -> Path:
        """Write the event list as game_<mission>_<time>.json in log_dir."""
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        slug = Path(self.mission_name).stem
        log_path = self.log_dir / f"game_{slug}_{stamp}.json"
        log_path.write_text(json.dumps(self.game_log, indent=2, default=str))
        logger.info(f"Wrote {len(self.game_log)} events to {log_path}")
        return log_path


def main():
    """Run a MEST QSR mission."""
    import argparse

    parser = argparse.ArgumentParser(description="MEST QSR headless mission runner")
    parser.add_argument("--mission", default="skirmish_small", help="Mission name or path to a mission file")
    parser.add_argument("--turns", type=int, default=None, help=f"Turn cap (default: {MAX_TURNS})")
    parser.add_argument("--seed", type=int, default=None, help="Dice seed")
    parser.add_argument("--llm", action="store_true", help="Use the OpenAI agent for AI-controlled sides")
    parser.add_argument("--strict-bp", action="store_true", help="Reject missions whose BP mismatch the game size")
    parser.add_argument("--data", default="data", help="Data directory path")
    parser.add_argument("--logs", default="logs", help="Log directory path")

    args = parser.parse_args()

    sim = MissionSimulation(
        mission=args.mission,
        data_path=args.data,
        log_dir=args.logs,
        seed=args.seed,
        use_llm=args.llm,
        strict_bp=args.strict_bp,
    )

    results = sim.run_game(max_turns=args.turns)

    def fmt(scores: dict) -> str:
        return "  ".join(f"{side}={value}" for side, value in scores.items())

    print(f"\n{results['mission']}: {results['winner']} after {results['turns_played']} turns ({results['reason']})")
    print(f"  VP        {fmt(results['final_vp'])}")
    print(f"  RP        {fmt(results['final_rp'])}")
    print(f"  Survivors {fmt(results['surviving_models'])}")
    print(f"  Took {results['duration']}")


if __name__ == "__main__":
    main()
