from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from app.domain.lifecycle.handlers import build_snapshot, end_game

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/session")
async def get_session(request: Request):
    """
    Current game + roster (debug/admin).
    """
    session = request.app.state.session
    wsman = request.app.state.wsman
    snap = build_snapshot(session).model_dump()
    snap["connections"] = await wsman.size()
    return snap


@router.post("/session/end")
async def force_end(request: Request):
    """
    Force-end the running game (debug/admin). Stops every game timer.
    """
    session = request.app.state.session
    async with session.lock:
        if not session.game.in_progress:
            raise HTTPException(status_code=409, detail="No game in progress")
        events = await end_game(session, "ADMIN")
    await session.notifier.publish(events)
    return {"ok": True, "game_no": session.game.game_no}
