"""
WebSocket command server for MEST QSR.

Each connection owns one BattleSession. Clients send
{"command": <name>, ...arguments} and get back {"type": "result", ...}
or {"type": "error", ...}.
"""

import os
import json
import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from dotenv import load_dotenv

import websockets
from websockets.http11 import Response
from websockets.datastructures import Headers

from mest import BattleSession, MestError, Side, make_terrain
from agents import HeuristicAgent

load_dotenv(Path(__file__).parent / ".env")

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DATA_PATH = Path("data")


def _to_wire(value):
    """Convert engine results into JSON-ready values."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_to_wire(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_wire(v) for k, v in value.items()}
    return value


class CommandDispatcher:
    """Maps wire commands onto a BattleSession."""

    def __init__(self, session: BattleSession):
        self.session = session
        self.commands: dict[str, Callable[[dict], object]] = {
            # Commands
            "loadMission": self.load_mission,
            "placeTerrain": self.place_terrain,
            "removeTerrain": lambda m: self.session.remove_terrain(m["id"]),
            "moveModel": lambda m: self.session.move_model(m["modelId"], m["target"]),
            "moveToward": lambda m: self.session.move_toward(m["modelId"], m["target"]),
            "addToken": lambda m: {"count": self.session.add_token(m["modelId"], m["tokenType"], m.get("count", 1))},
            "removeToken": lambda m: {"count": self.session.remove_token(m["modelId"], m["tokenType"])},
            "addHindrance": lambda m: self.session.add_hindrance(m["modelId"], m["hindranceType"]),
            "removeHindrance": lambda m: self.session.remove_hindrance(m["modelId"], m["hindranceType"]),
            "resolveCombat": lambda m: self.session.resolve_combat(
                m["attackerId"], m["defenderId"], m.get("attackType"), m.get("simulate", False)),
            "startNewTurn": lambda m: {"arrived": [x.id for x in self.session.start_new_turn()]},
            "checkObjectives": lambda m: self.session.check_objectives(),
            "completeObjective": self.complete_objective,
            "processEndOfTurn": lambda m: self.session.process_end_of_turn(),
            "aiTurn": self.ai_turn,
            "undo": lambda m: {"undone": self.session.undo()},
            "redo": lambda m: {"redone": self.session.redo()},
            # Queries
            "isValidPlacement": self.is_valid_placement,
            "validateLOS": lambda m: self.session.validate_los(m["modelA"], m["modelB"]),
            "calculateDefensiveBonus": lambda m: self.session.calculate_defensive_bonus(
                m["position"], m["enemies"]),
            "findBestDefensivePosition": lambda m: self.session.find_best_defensive_position(
                m["start"], m["enemies"], m["maxAP"]),
            "findPath": lambda m: self.session.find_path(m["start"], m["end"], m.get("maxAP")),
            "getTokenCounts": lambda m: self.session.get_token_counts(m["modelId"]),
            "getHindrances": lambda m: self.session.get_hindrances(m["modelId"]),
            "getMissionResult": lambda m: self.session.get_mission_result(),
            "getState": lambda m: self.session.to_dict(),
        }

    def load_mission(self, msg: dict):
        if "mission" in msg:
            mission = self.session.load_mission(msg["mission"])
        else:
            name = Path(msg["name"]).name
            mission = self.session.load_mission_file(self.session.data_path / "missions" / f"{name}.yaml")
        return {"mission": mission.to_dict(), "state": self.session.to_dict()}

    def _candidate(self, msg: dict):
        return make_terrain(msg["terrainType"], msg["x"], msg["y"], msg.get("params"),
                            msg.get("rotation", 0), self.session.rules)

    def place_terrain(self, msg: dict):
        return self.session.place_terrain(msg["terrainType"], msg["x"], msg["y"],
                                          msg.get("params"), msg.get("rotation", 0))

    def is_valid_placement(self, msg: dict):
        return self.session.is_valid_placement(self._candidate(msg))

    def complete_objective(self, msg: dict):
        completion = self.session.complete_objective(msg["objectiveId"], msg.get("side"))
        if completion is None:
            return {"completed": False}
        return {"completed": True, "side": completion.side.value, "points": completion.points}

    def ai_turn(self, msg: dict):
        side = Side(msg["side"])
        profile = None
        if self.session.mission is not None:
            profile = self.session.mission.sides[side].ai_profile
        agent = HeuristicAgent.create_default(side.value, profile)
        return {"events": agent.take_turn(self.session)}

    def dispatch(self, msg: dict) -> dict:
        """Run one command. Errors come back as messages, never raised."""
        name = msg.get("command", "")
        handler = self.commands.get(name)
        if handler is None:
            return {"type": "error", "command": name, "message": f"Unknown command: {name}"}
        try:
            result = handler(msg)
        except (MestError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"{name} failed: {e}")
            if isinstance(e, KeyError) and not isinstance(e, MestError):
                message = f"Missing field: {e.args[0]}"
            else:
                message = str(e)
            return {"type": "error", "command": name, "error": type(e).__name__, "message": message}
        return {"type": "result", "command": name, "result": _to_wire(result)}


# ── WebSocket Server ──


async def handle_websocket(websocket, data_path: Optional[Path] = None):
    """Handle a single WebSocket connection (one battle session)."""
    dispatcher = CommandDispatcher(BattleSession(data_path=data_path or DATA_PATH))

    async def send_json(msg_type: str, data: dict):
        await websocket.send(json.dumps({"type": msg_type, **data}, default=str))

    try:
        async for raw in websocket:
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await send_json("error", {"message": "Invalid JSON"})
                continue
            if not isinstance(msg, dict):
                await send_json("error", {"message": "Expected a JSON object"})
                continue

            # Pathfinding and AI turns can take a moment; keep the loop free
            loop = asyncio.get_event_loop()
            reply = await loop.run_in_executor(None, dispatcher.dispatch, msg)
            msg_type = reply.pop("type")
            await send_json(msg_type, reply)

    except websockets.exceptions.ConnectionClosed:
        logger.info("Client disconnected")


def http_handler(connection, request):
    """Answer a plain GET /health with a status document (websockets process_request)."""
    if request.path == "/health":
        body = json.dumps({"service": "mest", "status": "ok"}).encode()
        return Response(
            200,
            "OK",
            Headers([
                ("Content-Type", "application/json"),
                ("Content-Length", str(len(body))),
            ]),
            body,
        )
    return None  # Let websockets handle WebSocket upgrade


async def main():
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8080"))

    logger.info(f"Starting server on ws://{host}:{port}")

    async with websockets.serve(
        handle_websocket,
        host,
        port,
        process_request=http_handler,
        max_size=10 * 1024 * 1024,  # 10MB max message
    ):
        await asyncio.Future()  # run forever


if __name__ == "__main__":
    asyncio.run(main())
