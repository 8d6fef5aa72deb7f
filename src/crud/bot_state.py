"""CRUD operations for bot learning state."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.bot_state import BotState


async def get_bot_state(db: AsyncSession, bot_name: str) -> BotState | None:
    result = await db.execute(select(BotState).where(BotState.bot_name == bot_name))
    return result.scalar_one_or_none()


async def upsert_bot_state(
    db: AsyncSession, *, bot_name: str, last_learned_at: datetime, notes_json: str
) -> BotState:
    state = await get_bot_state(db, bot_name)
    if state is None:
        state = BotState(
            bot_name=bot_name, last_learned_at=last_learned_at, notes_json=notes_json
        )
        db.add(state)
    else:
        state.last_learned_at = last_learned_at
        state.notes_json = notes_json
    await db.commit()
    await db.refresh(state)
    return state
