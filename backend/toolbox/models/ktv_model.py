from typing import Optional

from pydantic import BaseModel, Field


class KtvSong(BaseModel):
    url: str = Field(..., description="Direct MP3 address of the recording")
    songName: Optional[str] = Field(None, description="Song title shown on the share page")
