"""Database ORM models.

Defines persistent entities:
- Resource: a piece of source knowledge added through the addResource tool.
- Embedding: one chunk of a resource with its pgvector embedding, used for
  cosine-similarity retrieval. Rows are append-only.
- User / AuthSession: read-only view of the auth provider's tables, used to
  resolve a session token to a user.
- Post: simple user-visible posts.
"""
from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from app.config import settings
from app.db import Base
from app.utils import generate_id, utcnow


class Resource(Base):
    """Source text added to the knowledge base.

    The full content is kept alongside its chunks so a resource can be
    re-embedded when the embedding model changes.
    """
    __tablename__ = "resources"

    id = Column(String(191), primary_key=True, default=generate_id)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    embeddings = relationship("Embedding", back_populates="resource", cascade="all, delete-orphan")


class Embedding(Base):
    """Vector-embedded chunk of a resource.

    Notes:
        The embedding dimension is derived from settings.EMBEDDING_DIM and must
        match the embedding model configured in app.config.Settings.
    """
    __tablename__ = "embeddings"

    id = Column(String(191), primary_key=True, default=generate_id)
    resource_id = Column(String(191), ForeignKey("resources.id", ondelete="CASCADE"), nullable=True)
    content = Column(Text, nullable=False)
    embedding = Column(Vector(dim=settings.EMBEDDING_DIM), nullable=False)

    resource = relationship("Resource", back_populates="embeddings")

    __table_args__ = (Index("idx_embeddings_resource", "resource_id"),)


class User(Base):
    __tablename__ = "users"

    id = Column(String(191), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class AuthSession(Base):
    """A login session issued by the auth provider; looked up by token."""
    __tablename__ = "sessions"

    id = Column(String(191), primary_key=True)
    token = Column(String(255), nullable=False, unique=True)
    user_id = Column(String(191), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User")


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(256), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)

    __table_args__ = (Index("idx_posts_name", "name"),)
