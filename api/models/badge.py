import uuid
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column
from database import Base


class Badge(Base):
    __tablename__ = "badges"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: uuid.uuid4().hex[:8])
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    image_url: Mapped[str] = mapped_column(String, default="")
    rarity: Mapped[str] = mapped_column(String, default="common")  # 'common', 'uncommon', 'rare', 'epic', 'legendary'
    category: Mapped[str] = mapped_column(String, nullable=False)
