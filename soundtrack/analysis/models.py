"""
Analysis types and errors.
"""
import base64
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union


class AnalysisError(Exception):
    """Analysis call failed or returned something unusable."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body
        self.user_message = message


class AnalysisInputError(AnalysisError):
    """Neither script text nor video was provided."""


@dataclass(frozen=True)
class ScriptAnalysis:
    summary: str
    mood: str
    title: str
    music_prompt: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'summary': self.summary,
            'mood': self.mood,
            'title': self.title,
            'music_prompt': self.music_prompt,
        }


@dataclass(frozen=True)
class VideoInput:
    """Video sent inline with the analysis request."""
    data: bytes
    mime_type: str = 'video/mp4'

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "VideoInput":
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(data=path.read_bytes(), mime_type=mime_type or 'video/mp4')

    def to_part(self) -> Dict[str, Any]:
        return {
            'inline_data': {
                'mime_type': self.mime_type,
                'data': base64.b64encode(self.data).decode('ascii'),
            }
        }
