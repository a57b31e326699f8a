from typing import Any, Mapping

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from posts_api.db import Base

TITLE_MAX_LENGTH = 255


class Post(Base):
    """SQLAlchemy model representing a post."""
    __tablename__ = "posts"
    # Without AUTOINCREMENT SQLite hands out the id of a deleted last row again.
    __table_args__ = {"sqlite_autoincrement": True}

    # Attributes that may be copied from a request payload.
    fillable = ("title", "body")

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(TITLE_MAX_LENGTH), nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def fill(self, values: Mapping[str, Any]) -> "Post":
        """Assign the allow-listed keys of ``values``; everything else is ignored."""
        for name in self.fillable:
            if name in values:
                setattr(self, name, values[name])
        return self

    def __repr__(self) -> str:
        return f"<Post id={self.id!r} title={self.title!r}>"
