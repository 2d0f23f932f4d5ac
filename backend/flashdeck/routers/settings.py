import aiosqlite
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from flashdeck.db.sqlite import get_all_settings, get_db, get_setting, set_setting

router = APIRouter()


class SettingUpdate(BaseModel):
    key: str
    value: str


class Profile(BaseModel):
    grade_level: str | None = None


# --- Profile ---


@router.get("/profile", response_model=Profile)
async def get_profile(db: aiosqlite.Connection = Depends(get_db)) -> Profile:
    return Profile(grade_level=(await get_setting(db, "grade_level")) or None)


@router.put("/profile", response_model=Profile)
async def update_profile(
    body: Profile, db: aiosqlite.Connection = Depends(get_db)
) -> Profile:
    await set_setting(db, "grade_level", (body.grade_level or "").strip())
    return await get_profile(db)


# --- Settings CRUD ---


@router.get("/")
async def list_settings(db: aiosqlite.Connection = Depends(get_db)) -> dict[str, str]:
    return await get_all_settings(db)


@router.put("/")
async def update_setting(
    body: SettingUpdate, db: aiosqlite.Connection = Depends(get_db)
) -> dict[str, str]:
    await set_setting(db, body.key, body.value)
    return {"key": body.key, "value": body.value}
