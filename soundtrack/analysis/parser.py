"""
Prompt construction and response parsing for soundtrack analysis.
"""
import json
import logging
from typing import Any, Mapping, Optional

from soundtrack.analysis.models import AnalysisError, ScriptAnalysis

logger = logging.getLogger(__name__)

MAX_MUSIC_PROMPT_CHARS = 450

ANALYSIS_INSTRUCTIONS = f"""
You are a professional film score composer.
You will receive a video (and optionally its script / description).
Your goal is to create a single, cohesive music generation prompt that acts as the soundtrack for the entire video.

Return ONLY a JSON object with the following fields (no markdown, no extra text):
1. summary: A brief 1-sentence summary of the video's content.
2. mood: 2-3 words describing the emotional tone (e.g., "Melancholic, Hopeful").
3. title: A creative title for the soundtrack.
4. music_prompt: A detailed description for an AI music generator.
   - Focus on instruments, tempo, genre, and atmosphere.
   - Do NOT include lyrics.
   - Keep it under {MAX_MUSIC_PROMPT_CHARS} characters.
""".strip()


def build_analysis_prompt(script_text: Optional[str]) -> str:
    script = (script_text or '').strip()
    if script:
        return f"{ANALYSIS_INSTRUCTIONS}\n\nHere is the script or description of the video:\n\n{script}"
    return f"{ANALYSIS_INSTRUCTIONS}\n\nNo script was provided. Infer everything from the video only."


def extract_response_text(response: Any) -> str:
    """Text of the first candidate; joins all text parts when the first has none."""
    candidates = response.get('candidates') if isinstance(response, Mapping) else None
    if not candidates or not isinstance(candidates, list):
        raise AnalysisError("No text content returned from the analysis model.")

    content = candidates[0].get('content') if isinstance(candidates[0], Mapping) else None
    parts = content.get('parts') if isinstance(content, Mapping) else None
    if not isinstance(parts, list):
        raise AnalysisError("No text content returned from the analysis model.")

    texts = [p.get('text') for p in parts if isinstance(p, Mapping) and isinstance(p.get('text'), str)]
    text = texts[0] if texts and texts[0].strip() else '\n'.join(t for t in texts if t)
    if not text.strip():
        raise AnalysisError("No text content returned from the analysis model.")
    return text


def parse_analysis_text(text: str) -> ScriptAnalysis:
    """
    Parse the model's answer into a ScriptAnalysis.

    Models wrap JSON in prose or code fences, so the slice between the first
    '{' and the last '}' is parsed. Missing fields become empty strings.
    """
    start = text.find('{')
    end = text.rfind('}')
    json_slice = text[start:end + 1] if start != -1 and end > start else text

    try:
        parsed = json.loads(json_slice)
    except json.JSONDecodeError as exc:
        logger.error(f"[ANALYSIS] Failed to parse model output as JSON: {text[:300]}")
        raise AnalysisError("Failed to parse analysis response as JSON.", body=text) from exc

    if not isinstance(parsed, Mapping):
        raise AnalysisError("Analysis response is not a JSON object.", body=text)

    def field(name: str) -> str:
        value = parsed.get(name)
        return value.strip() if isinstance(value, str) else ''

    return ScriptAnalysis(
        summary=field('summary'),
        mood=field('mood'),
        title=field('title'),
        music_prompt=field('music_prompt'),
    )
