from sqlalchemy import Boolean, Column, DateTime, Numeric, String, Text
from sqlalchemy.sql import func

from app.core.database import Base


class Course(Base):
    __tablename__ = "courses"

    # Slug such as "agentic-ai-bootcamp"; also part of enrollment ids
    id = Column(String(100), primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    instructor = Column(String(150), nullable=True)
    duration = Column(String(100), nullable=True)
    level = Column(String(50), nullable=True)
    image = Column(Text, nullable=True)

    price = Column(Numeric(10, 2), nullable=False, default=0)
    coming_soon = Column(Boolean, default=False, nullable=False)
    is_published = Column(Boolean, default=True, nullable=False)

    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"Course(id={self.id}, title={self.title}, price={self.price})"
