# Fake Samvera stories API for local development.
# Run with: uvicorn storyviewer.fake_api:app --reload
import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

app = FastAPI(title="Fake Story API (with delay)")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)

MEDIA_DIR = Path(__file__).parent.resolve() / "media"
ORG_ID = "demo-org"

STORIES = [
    {"id": "story-garden", "class_id": None, "author_id": "principal-1", "title": "Garden day"},
    {"id": "story-music", "class_id": "class-bears", "author_id": "teacher-1", "title": "Music time"},
    {"id": "story-lunch", "class_id": "class-owls", "author_id": "teacher-2", "title": "Lunch"},
]

STORY_ITEMS = {
    "story-garden": [
        {"order_index": 0, "url": "/media/garden.gif", "mime_type": "image/gif", "duration_ms": 5000,
         "caption": "Planting tomatoes"},
        {"order_index": 1, "url": None, "mime_type": None, "duration_ms": 10000,
         "caption": "Everyone got their hands dirty today!"},
    ],
    "story-music": [
        {"order_index": 0, "url": None, "mime_type": None, "duration_ms": None,
         "caption": "Drums, bells and a lot of singing."},
    ],
    "story-lunch": [],
}


def _story_payload(story: dict, now: datetime) -> dict:
    return {
        **story,
        "org_id": ORG_ID,
        "caption": None,
        "is_public": story["class_id"] is None,
        "created_at": (now - timedelta(hours=1)).isoformat(),
        "expires_at": (now + timedelta(hours=24)).isoformat(),
    }


def _visible(story: dict, audience: Optional[str], class_ids: set, author_id: Optional[str]) -> bool:
    if audience == "principal":
        return author_id is None or story["author_id"] == author_id
    if audience in ("teacher", "parent"):
        return story["class_id"] is None or story["class_id"] in class_ids
    return True


@app.get("/api/stories")
async def list_stories(
    audience: Optional[str] = Query(None, pattern="^(principal|teacher|parent)$"),
    teacherClassIds: Optional[str] = None,
    teacherAuthorId: Optional[str] = None,
    parentClassIds: Optional[str] = None,
    principalAuthorId: Optional[str] = None,
    delay: float = Query(0.0, ge=0.0, le=30.0, description="Simulated latency in seconds"),
):
    """
    Stories visible to the given audience, newest first.
    """
    if audience == "teacher" and not teacherClassIds and not teacherAuthorId:
        raise HTTPException(
            status_code=400,
            detail="For teacher audience, either teacherClassIds or teacherAuthorId must be provided",
        )

    raw_ids = teacherClassIds if audience == "teacher" else parentClassIds
    class_ids = {value.strip() for value in (raw_ids or "").split(",") if value.strip()}
    if delay:
        await asyncio.sleep(delay)

    now = datetime.now(timezone.utc)
    stories = [
        _story_payload(story, now)
        for story in STORIES
        if _visible(story, audience, class_ids, principalAuthorId)
    ]
    return JSONResponse({"stories": stories})


@app.get("/api/story-items")
async def list_story_items(
    storyId: str = Query(..., description="Story id"),
    delay: float = Query(0.0, ge=0.0, le=30.0, description="Simulated latency in seconds"),
):
    """
    Items of one story ordered by order_index.
    """
    if storyId not in STORY_ITEMS:
        raise HTTPException(status_code=404, detail=f"Story not found: {storyId}")
    if delay:
        await asyncio.sleep(delay)

    items = [
        {"id": f"{storyId}-item-{item['order_index']}", "story_id": storyId, **item}
        for item in sorted(STORY_ITEMS[storyId], key=lambda entry: entry["order_index"])
    ]
    return JSONResponse({"items": items})


@app.get("/media/{name}")
def media(name: str):
    path = (MEDIA_DIR / name).resolve()
    if path.parent != MEDIA_DIR or not path.is_file():
        raise HTTPException(status_code=404, detail=f"Media file not found: {name}")
    return FileResponse(path=str(path))


@app.get("/")
def root():
    return {"msg": "Fake Story API OK. GET /api/stories?audience=...  GET /api/story-items?storyId=..."}
