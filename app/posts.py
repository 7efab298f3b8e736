"""Posts API: a greeting for the signed-in user plus simple post creation and lookup."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.auth import SessionInfo, get_auth_session
from app.db import get_db
from app.models import Post
from app.schemas import Greeting, PostCreate, PostOut

router = APIRouter(prefix="/api/posts", tags=["posts"])


@router.get("/hello", response_model=Greeting)
def hello(text: str = Query(...), auth: Optional[SessionInfo] = Depends(get_auth_session)):
    """Greet the signed-in user (``text`` is accepted for client compatibility)."""
    if auth is None:
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})
    return Greeting(greeting=f"Hello {auth.user.name}")


@router.post("", status_code=201, response_model=PostOut)
def create_post(req: PostCreate, db: Session = Depends(get_db)) -> PostOut:
    post = Post(name=req.name)
    db.add(post)
    db.commit()
    db.refresh(post)
    return PostOut.model_validate(post)


@router.get("/latest", response_model=Optional[PostOut])
def get_latest(db: Session = Depends(get_db)) -> Optional[PostOut]:
    post = db.execute(select(Post).order_by(Post.created_at.desc(), Post.id.desc()).limit(1)).scalar_one_or_none()
    return PostOut.model_validate(post) if post is not None else None
