"""
Provider profiles.

A profile holds everything that differs between music-generation providers:
endpoints, request body, where the job id comes back, the status schema and
the polling defaults. The client and the poll loop are otherwise shared.

Suno (sunoapi.org):
- POST /api/v1/generate -> {"code": 200, "data": {"taskId": "..."}}
- GET  /api/v1/generate/record-info?taskId=... -> record-info schema

Udio (udioapi.pro):
- POST /generate -> {"workId": "..."} or {"data": {"task_id": "..."}}
- GET  /feed?workId=... -> feed schema
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from soundtrack.music.models import GenerateOptions
from soundtrack.music.normalizer import SchemaVariant

DEFAULT_STYLE = "Cinematic"
DEFAULT_TITLE = "Generated Soundtrack"
DEFAULT_CALLBACK_URL = "https://example.com/api/suno/callback"

PayloadBuilder = Callable[[str, GenerateOptions, Optional[str]], Dict[str, Any]]


@dataclass(frozen=True)
class ProviderProfile:
    name: str
    base_url: str
    submit_path: str
    status_path: str
    status_query_param: str
    build_payload: PayloadBuilder
    job_id_paths: Tuple[Tuple[str, ...], ...]
    schema: SchemaVariant
    attempt_budget: int
    interval_seconds: float

    def submit_url(self, base_url: Optional[str] = None) -> str:
        return f"{(base_url or self.base_url).rstrip('/')}{self.submit_path}"

    def status_url(self, base_url: Optional[str] = None) -> str:
        return f"{(base_url or self.base_url).rstrip('/')}{self.status_path}"


def build_suno_payload(prompt: str, options: GenerateOptions, callback_url: Optional[str]) -> Dict[str, Any]:
    return {
        "prompt": prompt,
        "style": options.style or DEFAULT_STYLE,
        "title": options.title or DEFAULT_TITLE,
        "customMode": True,
        "instrumental": options.instrumental,
        "model": "V5",
        # Required by the API; completion is detected by polling
        "callBackUrl": callback_url or DEFAULT_CALLBACK_URL,
    }


def build_udio_payload(prompt: str, options: GenerateOptions, callback_url: Optional[str]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "model": "chirp-v3-5",
        "gpt_description_prompt": prompt,
        "make_instrumental": options.instrumental,
    }
    if options.title:
        payload["title"] = options.title
    if options.style:
        payload["tags"] = options.style
    return payload


SUNO = ProviderProfile(
    name="suno",
    base_url="https://api.sunoapi.org",
    submit_path="/api/v1/generate",
    status_path="/api/v1/generate/record-info",
    status_query_param="taskId",
    build_payload=build_suno_payload,
    job_id_paths=(("data", "taskId"), ("taskId",), ("data", "task_id")),
    schema=SchemaVariant.RECORD_INFO,
    attempt_budget=60,
    interval_seconds=5.0,
)

UDIO = ProviderProfile(
    name="udio",
    base_url="https://udioapi.pro/api/v2",
    submit_path="/generate",
    status_path="/feed",
    status_query_param="workId",
    build_payload=build_udio_payload,
    job_id_paths=(("workId",), ("data", "task_id"), ("data", "taskId"), ("data", "workId")),
    schema=SchemaVariant.FEED,
    attempt_budget=30,
    interval_seconds=10.0,
)

PROVIDERS: Dict[str, ProviderProfile] = {
    SUNO.name: SUNO,
    UDIO.name: UDIO,
}


def get_provider(name: str) -> ProviderProfile:
    """Look up a profile by name (case-insensitive)."""
    try:
        return PROVIDERS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown music provider '{name}'. Available: {sorted(PROVIDERS)}") from None
