"""
Result extraction: turn located upstream track entries into ResultTracks.

Entries without a usable audio URL are dropped. Upstream order is kept.
"""
import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from soundtrack.music.models import ResultTrack

logger = logging.getLogger(__name__)

# Final audio first; stream URLs are only playable previews
AUDIO_URL_KEYS = ('audioUrl', 'audio_url', 'sourceAudioUrl', 'source_audio_url', 'url')
STREAM_URL_KEYS = ('streamAudioUrl', 'stream_audio_url', 'sourceStreamAudioUrl')
IMAGE_URL_KEYS = ('imageUrl', 'image_url', 'sourceImageUrl', 'image_large_url', 'imageLargeUrl')
ID_KEYS = ('id', 'audioId', 'audio_id', 'clipId', 'clip_id')


def first_text(entry: Mapping[str, Any], keys: Sequence[str]) -> Optional[str]:
    """First non-blank string value among keys."""
    for key in keys:
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def resolve_audio_url(entry: Any) -> Optional[str]:
    """Audio URL of a raw entry across all accepted field names, or None."""
    if isinstance(entry, str):
        return entry.strip() or None
    if isinstance(entry, Mapping):
        return first_text(entry, AUDIO_URL_KEYS)
    return None


def extract_tracks(raw_tracks: Iterable[Any], job_id: str) -> List[ResultTrack]:
    """
    Build ResultTracks from raw upstream entries.

    Args:
        raw_tracks: Entries as located by the normalizer; dicts, or bare URL
            strings for providers that only return URLs
        job_id: Used to synthesise ids as "<job_id>-<index>"; the index is
            the entry's position upstream, so ids stay stable between polls

    Returns:
        Tracks with a non-empty audio URL, in upstream order
    """
    tracks: List[ResultTrack] = []
    for index, entry in enumerate(raw_tracks or ()):
        audio_url = resolve_audio_url(entry)
        if not audio_url:
            logger.debug(f"[MUSIC_EXTRACT] job={job_id} entry #{index} has no audio URL, skipped")
            continue

        fallback_id = f"{job_id}-{index}"
        if isinstance(entry, str):
            tracks.append(ResultTrack(id=fallback_id, audio_url=audio_url))
            continue

        track_id = first_text(entry, ID_KEYS) or fallback_id
        tracks.append(ResultTrack(
            id=track_id,
            audio_url=audio_url,
            image_url=first_text(entry, IMAGE_URL_KEYS),
            title=first_text(entry, ('title',)),
            prompt=first_text(entry, ('prompt', 'gpt_description_prompt')),
            stream_audio_url=first_text(entry, STREAM_URL_KEYS),
            model_name=first_text(entry, ('modelName', 'model_name', 'model')),
            tags=first_text(entry, ('tags', 'style')),
            duration=_as_float(entry.get('duration')),
        ))
    return tracks
