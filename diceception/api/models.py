"""
SQLAlchemy models for games and persisted key-value saves.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text

from .database import Base


class SaveRecord(Base):
    """One KeyValueStore entry (e.g. an autosave document)."""
    __tablename__ = "saves"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)  # JSON document
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class GameRecord(Base):
    __tablename__ = "games"

    id = Column(String(36), primary_key=True)  # uuid
    name = Column(String(128), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    status = Column(String(32), nullable=False, default="in_progress")  # in_progress | over
    game_state = Column(Text, nullable=False)  # JSON string of the latest gameState document
    config = Column(Text, nullable=True)  # JSON of the GameConfig used to start the game
