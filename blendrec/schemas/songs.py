"""
Blendrec Song Schemas
Catalogue song records
"""

from typing import Optional

from pydantic import BaseModel, Field


class Song(BaseModel):
    """Catalogue song, optionally carrying DJ attributes"""
    id: str
    title: str
    artist: str
    genre: Optional[str] = None
    album: Optional[str] = None
    duration: Optional[int] = None
    tempo: Optional[float] = Field(default=None, description="Beats per minute")
    key: Optional[str] = Field(default=None, description="Musical key, e.g. 'Am', 'F#'")
    energy: Optional[float] = Field(default=None, ge=0.0, le=1.0, description="Normalized energy")

    @property
    def artist_key(self) -> str:
        return (self.artist or "").lower()

    def has_dj_attributes(self) -> bool:
        return self.tempo is not None or self.key is not None or self.energy is not None
