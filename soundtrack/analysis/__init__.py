"""Script/video analysis producing a music prompt."""
from soundtrack.analysis.gemini import GeminiAnalysisClient
from soundtrack.analysis.models import AnalysisError, AnalysisInputError, ScriptAnalysis, VideoInput
from soundtrack.analysis.parser import build_analysis_prompt, parse_analysis_text

__all__ = [
    'GeminiAnalysisClient',
    'AnalysisError',
    'AnalysisInputError',
    'ScriptAnalysis',
    'VideoInput',
    'build_analysis_prompt',
    'parse_analysis_text',
]
