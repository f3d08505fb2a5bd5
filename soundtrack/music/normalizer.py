"""
Schema normalizer for music-generation status responses.

Providers (and versions of the same provider) disagree on where the status
and the track list live. Each supported shape is a SchemaVariant with its own
strategy; ``normalize`` dispatches on the variant and always returns a
NormalizedStatus.

Handled shapes:
- RECORD_INFO: {code, msg, data: {status|state, response: {sunoData: [...]},
  errorMessage}} and its relatives; any level may arrive as a JSON string
- FEED: {code, data: [{id, status, audio_url, ...}, ...]}
"""
import json
import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from soundtrack.music.errors import MalformedResponseError, UpstreamBusinessError
from soundtrack.music.extractor import first_text
from soundtrack.music.models import NormalizedStatus, StatusCode

logger = logging.getLogger(__name__)


class SchemaVariant(str, Enum):
    RECORD_INFO = "record_info"
    FEED = "feed"
    AUTO = "auto"


# Upstream status vocabulary -> canonical status
STATUS_MAP: Dict[str, StatusCode] = {
    'PENDING': StatusCode.PENDING,
    'CREATED': StatusCode.PENDING,
    'QUEUED': StatusCode.PENDING,
    'QUEUING': StatusCode.PENDING,
    'SUBMITTED': StatusCode.PENDING,
    'WAITING': StatusCode.PENDING,
    'RUNNING': StatusCode.PENDING,
    'PROCESSING': StatusCode.PENDING,
    'GENERATING': StatusCode.PENDING,
    'TEXT_SUCCESS': StatusCode.PARTIAL,
    'FIRST_SUCCESS': StatusCode.PARTIAL,
    'STREAMING': StatusCode.PARTIAL,
    'SUCCESS': StatusCode.SUCCESS,
    'SUCCEED': StatusCode.SUCCESS,
    'SUCCEEDED': StatusCode.SUCCESS,
    'COMPLETE': StatusCode.SUCCESS,
    'COMPLETED': StatusCode.SUCCESS,
    'DONE': StatusCode.SUCCESS,
    'CREATE_TASK_FAILED': StatusCode.FAILED,
    'GENERATE_AUDIO_FAILED': StatusCode.FAILED,
    'CALLBACK_EXCEPTION': StatusCode.FAILED,
    'SENSITIVE_WORD_ERROR': StatusCode.FAILED,
    'FAILED': StatusCode.FAILED,
    'FAIL': StatusCode.FAILED,
    'ERROR': StatusCode.FAILED,
}

# Sub-stage completion fractions (queued, text-ready, first-audio-ready, complete)
STAGE_FRACTIONS: Dict[str, float] = {
    'PENDING': 0.1,
    'TEXT_SUCCESS': 0.4,
    'FIRST_SUCCESS': 0.7,
    'SUCCESS': 1.0,
}

# Most specific documented location first
RECORD_INFO_TRACK_PATHS: Tuple[Tuple[str, ...], ...] = (
    ('response', 'sunoData'),
    ('response', 'suno_data'),
    ('response', 'data'),
    ('sunoData',),
    ('data',),
    ('resultJson', 'resultUrls'),
    ('resultUrls',),
    ('tracks',),
    ('trackList',),
    ('track_list',),
)

STATUS_KEYS = ('status', 'state', 'task_status')
ERROR_KEYS = ('errorMessage', 'error_message', 'failMsg', 'fail_message', 'error')


def map_status(raw_status: Optional[str]) -> StatusCode:
    """Map an upstream status string; unrecognised values become UNKNOWN."""
    if not raw_status or not isinstance(raw_status, str):
        return StatusCode.UNKNOWN
    key = raw_status.strip().upper()
    if key in STATUS_MAP:
        return STATUS_MAP[key]
    if 'FAILED' in key or 'ERROR' in key:
        return StatusCode.FAILED
    return StatusCode.UNKNOWN


def _decode(value: Any) -> Any:
    """Decode a JSON-encoded object/array delivered as a string."""
    if isinstance(value, str):
        text = value.strip()
        if text[:1] in ('{', '['):
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                logger.warning(f"[MUSIC_NORMALIZE] Undecodable JSON string: {text[:120]}")
    return value


def _resolve_path(root: Any, path: Sequence[str]) -> Tuple[bool, Any]:
    """Follow a key path, decoding string-encoded levels on the way."""
    current = _decode(root)
    for key in path:
        if not isinstance(current, Mapping) or key not in current:
            return False, None
        current = _decode(current[key])
    return True, current


SUCCESS_CODE = 200


def check_business_code(data: Any) -> None:
    """Raise UpstreamBusinessError when the payload carries a non-200 code."""
    data = _decode(data)
    if not isinstance(data, Mapping) or 'code' not in data:
        return
    code = data.get('code')
    if code in (SUCCESS_CODE, str(SUCCESS_CODE)):
        return
    message = data.get('msg') or data.get('message') or 'Unknown error'
    raise UpstreamBusinessError(code, str(message))


def _stage_fraction(raw_status: Optional[str], status: StatusCode) -> Optional[float]:
    if raw_status:
        fraction = STAGE_FRACTIONS.get(raw_status.strip().upper())
        if fraction is not None:
            return fraction
    if status == StatusCode.SUCCESS:
        return 1.0
    return None


def _locate_record_tracks(data: Mapping[str, Any]) -> Tuple[Any, ...]:
    for path in RECORD_INFO_TRACK_PATHS:
        present, value = _resolve_path(data, path)
        if not present or value is None:
            continue
        if isinstance(value, list):
            return tuple(value)
        if isinstance(value, str) and value.strip():
            # Single URL in place of a list
            return (value.strip(),)
        logger.debug(f"[MUSIC_NORMALIZE] Ignoring non-list tracks at {'.'.join(path)}: {type(value).__name__}")
    return ()


def normalize_record_info(payload: Mapping[str, Any], job_id: Optional[str] = None) -> NormalizedStatus:
    """Normalize a record-info style response (status object with nested track list)."""
    data = _decode(payload.get('data'))
    if not isinstance(data, Mapping):
        # Flat responses carry everything at the top level
        data = payload

    raw_status = first_text(data, STATUS_KEYS) or first_text(payload, STATUS_KEYS)
    status = map_status(raw_status)

    error_message = None
    if status == StatusCode.FAILED:
        error_message = first_text(data, ERROR_KEYS) or first_text(payload, ERROR_KEYS) or raw_status

    return NormalizedStatus(
        status=status,
        raw_tracks=_locate_record_tracks(data),
        error_message=error_message,
        raw_status=raw_status,
        fraction=_stage_fraction(raw_status, status),
        job_id=job_id or first_text(data, ('taskId', 'task_id')),
        raw=payload,
    )


def _feed_status(entries: List[Mapping[str, Any]]) -> Tuple[Optional[str], StatusCode]:
    """Combine per-entry statuses: any failure wins, then any success, then the first."""
    mapped = [(first_text(e, STATUS_KEYS), map_status(first_text(e, STATUS_KEYS))) for e in entries]
    for wanted in (StatusCode.FAILED, StatusCode.SUCCESS, StatusCode.PARTIAL, StatusCode.PENDING):
        for raw_status, status in mapped:
            if status == wanted:
                return raw_status, status
    return (mapped[0][0] if mapped else None), StatusCode.UNKNOWN


def normalize_feed(payload: Mapping[str, Any], job_id: Optional[str] = None) -> NormalizedStatus:
    """Normalize a feed style response (flat array of per-track entries)."""
    items = _decode(payload.get('data'))
    if not isinstance(items, list):
        return NormalizedStatus(status=StatusCode.UNKNOWN, job_id=job_id, raw=payload)

    entries = [item for item in items if isinstance(item, Mapping)]
    if job_id is not None and any('id' in e for e in entries):
        entries = [e for e in entries if str(e.get('id')) == str(job_id)]

    if not entries:
        # Job not listed in the feed yet
        return NormalizedStatus(status=StatusCode.PENDING, job_id=job_id, raw=payload)

    raw_status, status = _feed_status(entries)
    error_message = None
    if status == StatusCode.FAILED:
        for entry in entries:
            error_message = first_text(entry, ERROR_KEYS)
            if error_message:
                break
        error_message = error_message or raw_status

    return NormalizedStatus(
        status=status,
        raw_tracks=tuple(entries),
        error_message=error_message,
        raw_status=raw_status,
        fraction=_stage_fraction(raw_status, status),
        job_id=job_id,
        raw=payload,
    )


_STRATEGIES = {
    SchemaVariant.RECORD_INFO: normalize_record_info,
    SchemaVariant.FEED: normalize_feed,
}


def detect_variant(payload: Mapping[str, Any]) -> SchemaVariant:
    """Pick the variant from the payload's shape."""
    data = _decode(payload.get('data'))
    if isinstance(data, list):
        return SchemaVariant.FEED
    return SchemaVariant.RECORD_INFO


def normalize(
    payload: Any,
    variant: SchemaVariant = SchemaVariant.AUTO,
    job_id: Optional[str] = None,
) -> NormalizedStatus:
    """
    Normalize a raw status payload.

    Args:
        payload: Decoded JSON body (a JSON string is decoded first)
        variant: Schema strategy (member or its value); AUTO detects it from the shape
        job_id: Job the payload belongs to (feed filtering, id synthesis)

    Returns:
        NormalizedStatus; unrecognised statuses come back as UNKNOWN

    Raises:
        MalformedResponseError: If the payload is not a JSON object at all
    """
    payload = _decode(payload)
    if not isinstance(payload, Mapping):
        raise MalformedResponseError(
            f"Status payload is not a JSON object: {type(payload).__name__}", payload
        )

    variant = SchemaVariant(variant)
    if variant == SchemaVariant.AUTO:
        variant = detect_variant(payload)

    result = _STRATEGIES[variant](payload, job_id)
    logger.debug(
        f"[MUSIC_NORMALIZE] variant={variant.value} raw_status={result.raw_status} "
        f"status={result.status.value} tracks={len(result.raw_tracks)}"
    )
    return result
