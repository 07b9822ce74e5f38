"""
FastAPI backend for Diceception.
Provides REST API endpoints for starting games, attacking, ending turns, running bots,
and browsing/restoring turn history. Each game's autosave lives in the saves table.
"""

import json
import random
import uuid
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from .database import SessionLocal, get_db, init_db
from .models import GameRecord
from .store import DatabaseStore

from diceception import config
from diceception.engine import AUTOSAVE_KEY, DEFAULT_DICE_SIDES, DEFAULT_MAX_DICE
from diceception.engine.combat import AttackError
from diceception.engine.events import EventRecorder
from diceception.engine.game import GameConfig, GameEngine
from diceception.engine.history import TurnHistory
from diceception.engine.probability import probability_band, probability_table, win_probability
from diceception.engine.queries import get_attack_options, get_player_stats
from diceception.engine.session import MAX_BOT_TURNS, GameSession
from diceception.engine.state import STATUS_OVER, GameState
from diceception.engine.strategy import available_strategies

app = FastAPI(
    title="Diceception API",
    description="Backend API for Diceception - a dice territory-conquest game",
    version="1.0.0",
)

# CORS configuration for frontend
CORS_ORIGINS = ["http://localhost:5173", "http://localhost:5174", "http://localhost:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log method and path so 500s can be traced to the failing endpoint."""
    method = getattr(request, "method", "?")
    url = getattr(request, "url", None)
    path = url.path if url else "?"
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            print(f"[500] {method} {path}", flush=True)
        return response
    except Exception:
        print(f"[500] {method} {path} (exception)", flush=True)
        raise


@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc):
    """Return 500 with CORS headers and full traceback so the frontend can read the error."""
    import traceback
    tb = traceback.format_exc()
    traceback.print_exc()
    origin = request.headers.get("origin")
    allow_origin = origin if origin in CORS_ORIGINS else CORS_ORIGINS[0]
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "traceback": tb},
        headers={
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Credentials": "true",
        },
    )


# In-memory live sessions (state is also persisted in DB); key = game_id
sessions: dict[str, GameSession] = {}

# Per-game event recorders, drained into each response
recorders: dict[str, EventRecorder] = {}

# Largest probability table served by /probability
MAX_TABLE_DICE = 20


# ===== Pydantic Models =====

class NewGameRequest(BaseModel):
    name: str = "Diceception"
    human_count: int = config.DEFAULT_HUMAN_COUNT
    bot_count: int = config.DEFAULT_BOT_COUNT
    map_width: int = config.DEFAULT_MAP_WIDTH
    map_height: int = config.DEFAULT_MAP_HEIGHT
    max_dice: int = DEFAULT_MAX_DICE
    dice_sides: int = DEFAULT_DICE_SIDES
    map_style: str = config.DEFAULT_MAP_STYLE
    game_mode: str = config.DEFAULT_GAME_MODE
    bot_ai_ids: list[str] = Field(default_factory=list)
    shuffle_players: bool = True
    seed: int | None = None  # fixed seed for reproducible games


class AttackRequest(BaseModel):
    from_x: int
    from_y: int
    to_x: int
    to_y: int


class BotTurnRequest(BaseModel):
    max_turns: int = MAX_BOT_TURNS


class RestoreRequest(BaseModel):
    index: int


class ScenarioRequest(BaseModel):
    name: str
    description: str = ""
    snapshot_index: int | None = None
    scenario_type: str = "scenario"


# ===== Session helpers =====

def _autosave_key(game_id: str) -> str:
    return f"{AUTOSAVE_KEY}_{game_id}"


def _new_session(game_id: str, seed: int | None = None) -> GameSession:
    recorder = EventRecorder()
    engine = GameEngine(event_sink=recorder, rng=random.Random(seed))
    history = TurnHistory(store=DatabaseStore(SessionLocal), autosave_key=_autosave_key(game_id))
    recorders[game_id] = recorder
    session = GameSession(engine, history)
    sessions[game_id] = session
    return session


def get_session(game_id: str, db: Session) -> GameSession:
    """Live session for game_id, rebuilt from the autosave or the stored state; 404 if unknown."""
    if game_id in sessions:
        return sessions[game_id]
    row = db.query(GameRecord).filter(GameRecord.id == game_id).first()
    if not row:
        raise HTTPException(status_code=404, detail=f"Game {game_id} not found")
    session = _new_session(game_id)
    if not session.try_resume().resumed:
        # Finished games (and games whose autosave is gone) load from the row
        try:
            raw = json.loads(row.game_state) if isinstance(row.game_state, str) else row.game_state
            session.engine.load_state(GameState.from_dict(raw))
        except (TypeError, ValueError):
            # Corrupt state in DB: treat as not found so the client can start a fresh game
            del sessions[game_id]
            del recorders[game_id]
            raise HTTPException(status_code=404, detail=f"Game {game_id} not found")
    # Rebuilding is not news for the client
    recorders[game_id].clear()
    return session


def save_game(game_id: str, session: GameSession, db: Session) -> None:
    """Persist the latest state to the games row."""
    row = db.query(GameRecord).filter(GameRecord.id == game_id).first()
    if row:
        row.game_state = json.dumps(session.state.to_dict())
        row.status = session.engine.status
        db.commit()


def state_for_response(state: GameState) -> dict[str, Any]:
    """State dict plus computed stats and the current player's legal attacks for the UI."""
    out = state.to_dict()
    out["status"] = state.status
    out["player_stats"] = get_player_stats(state)
    out["attack_options"] = [o.to_dict() for o in get_attack_options(state)] if state.status != STATUS_OVER else []
    return out


def _response(game_id: str, session: GameSession, **extra: Any) -> dict[str, Any]:
    recorder = recorders.get(game_id)
    events = recorder.drain() if recorder else []
    return {
        "game_id": game_id,
        "state": state_for_response(session.state),
        "events": [e.to_dict() for e in events],
        **extra,
    }


@app.on_event("startup")
def on_startup():
    init_db()


# ===== API Endpoints =====

@app.get("/")
def root():
    return {"message": "Diceception API", "version": "1.0.0"}


@app.get("/strategies")
def list_strategies():
    return {"strategies": available_strategies()}


@app.post("/games")
def create_game(request: NewGameRequest, db: Session = Depends(get_db)):
    """Start a new game. Returns game_id, the initial state and the start events."""
    game_config = GameConfig(
        human_count=request.human_count,
        bot_count=request.bot_count,
        map_width=request.map_width,
        map_height=request.map_height,
        max_dice=request.max_dice,
        dice_sides=request.dice_sides,
        map_style=request.map_style,
        game_mode=request.game_mode,
        bot_ai_ids=request.bot_ai_ids,
        shuffle_players=request.shuffle_players,
    )
    game_id = str(uuid.uuid4())
    session = _new_session(game_id, request.seed)
    try:
        session.start(game_config)
    except ValueError as e:
        del sessions[game_id]
        del recorders[game_id]
        raise HTTPException(status_code=400, detail=str(e))
    row = GameRecord(
        id=game_id,
        name=request.name,
        status=session.engine.status,
        game_state=json.dumps(session.state.to_dict()),
        config=json.dumps(game_config.to_dict()),
    )
    db.add(row)
    db.commit()
    return _response(game_id, session, name=request.name)


@app.get("/games/{game_id}")
def get_game_state(game_id: str, db: Session = Depends(get_db)):
    """Get current game state (from cache, autosave or DB)."""
    session = get_session(game_id, db)
    return _response(game_id, session)


@app.delete("/games/{game_id}")
def delete_game(game_id: str, db: Session = Depends(get_db)):
    """Delete a game from DB and cache, including its autosave."""
    row = db.query(GameRecord).filter(GameRecord.id == game_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Game not found")
    session = sessions.pop(game_id, None)
    recorders.pop(game_id, None)
    if session is not None:
        session.quit()
    else:
        TurnHistory(store=DatabaseStore(SessionLocal), autosave_key=_autosave_key(game_id)).clear_autosave()
    db.delete(row)
    db.commit()
    return {"message": f"Game {game_id} deleted"}


@app.post("/games/{game_id}/attack")
def do_attack(game_id: str, request: AttackRequest, db: Session = Depends(get_db)):
    """Attack as the current player. Illegal attacks return 400 with the reason."""
    session = get_session(game_id, db)
    result = session.attack(request.from_x, request.from_y, request.to_x, request.to_y)
    if isinstance(result, AttackError):
        raise HTTPException(status_code=400, detail=result.error)
    save_game(game_id, session, db)
    return _response(game_id, session, battle=result.to_dict())


@app.post("/games/{game_id}/end-turn")
def do_end_turn(game_id: str, db: Session = Depends(get_db)):
    """Reinforce the current player and pass the turn."""
    session = get_session(game_id, db)
    if session.engine.status == STATUS_OVER:
        raise HTTPException(status_code=400, detail="Game is over")
    result = session.end_turn()
    save_game(game_id, session, db)
    return _response(game_id, session, reinforcement=result.to_dict() if result else None)


@app.post("/games/{game_id}/bot-turn")
def do_bot_turns(game_id: str, request: BotTurnRequest, db: Session = Depends(get_db)):
    """Play bot turns until a human is to move or the game ends."""
    session = get_session(game_id, db)
    if not session.is_bot_turn():
        raise HTTPException(status_code=400, detail="Current player is not a bot")
    results = session.play_bot_turns(max_turns=request.max_turns)
    save_game(game_id, session, db)
    turns = [
        {
            "moves": [m.to_dict() for m in r.moves],
            "ended_turn": r.ended_turn,
            "hit_cap": r.hit_cap,
            "cancelled": r.cancelled,
            "reinforcement": r.reinforcement.to_dict() if r.reinforcement else None,
        }
        for r in results
    ]
    return _response(game_id, session, turns=turns)


@app.get("/games/{game_id}/history")
def get_history(game_id: str, db: Session = Depends(get_db)):
    session = get_session(game_id, db)
    return {
        "game_id": game_id,
        "snapshots": [
            {
                "index": i,
                "turn": s.turn,
                "current_player_index": s.current_player_index,
                "timestamp": s.timestamp,
            }
            for i, s in enumerate(session.history.snapshots)
        ],
        "has_initial_state": session.history.has_initial_state(),
    }


@app.post("/games/{game_id}/history/restore")
def restore_history(game_id: str, request: RestoreRequest, db: Session = Depends(get_db)):
    session = get_session(game_id, db)
    result = session.restore(request.index)
    if not result.ok:
        raise HTTPException(status_code=400, detail=result.reason)
    save_game(game_id, session, db)
    return _response(game_id, session)


@app.post("/games/{game_id}/retry")
def retry_game(game_id: str, db: Session = Depends(get_db)):
    """Restart the game from its initial position."""
    session = get_session(game_id, db)
    result = session.retry()
    if not result.ok:
        raise HTTPException(status_code=400, detail=result.reason)
    save_game(game_id, session, db)
    return _response(game_id, session)


@app.post("/games/{game_id}/resume")
def resume_game(game_id: str, db: Session = Depends(get_db)):
    """Drop the live session and resume the game from its autosave."""
    row = db.query(GameRecord).filter(GameRecord.id == game_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Game not found")
    sessions.pop(game_id, None)
    session = _new_session(game_id)
    result = session.try_resume()
    if not result.resumed:
        sessions.pop(game_id, None)
        recorders.pop(game_id, None)
        raise HTTPException(status_code=400, detail=result.reason)
    return _response(game_id, session, resumed=True)


@app.post("/games/{game_id}/scenario")
def export_scenario(game_id: str, request: ScenarioRequest, db: Session = Depends(get_db)):
    session = get_session(game_id, db)
    try:
        scenario = session.export_scenario(
            request.name,
            request.description,
            snapshot_index=request.snapshot_index,
            scenario_type=request.scenario_type,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"game_id": game_id, "scenario": scenario}


@app.get("/probability")
def get_probability(
    attacker: int | None = None,
    defender: int | None = None,
    sides: int = DEFAULT_DICE_SIDES,
    max_dice: int = DEFAULT_MAX_DICE,
):
    """Win probability for one matchup, or the whole table when attacker/defender are omitted."""
    if not 1 <= max_dice <= MAX_TABLE_DICE:
        raise HTTPException(status_code=400, detail=f"max_dice must be between 1 and {MAX_TABLE_DICE}")
    try:
        if attacker is None or defender is None:
            return {"sides": sides, "table": probability_table(sides, max_dice)}
        probability = win_probability(attacker, defender, sides)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "attacker": attacker,
        "defender": defender,
        "sides": sides,
        "probability": probability,
        "band": probability_band(probability),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
