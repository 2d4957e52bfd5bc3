from .config import Settings, load_settings
from .engine import InterviewEngine
from .errors import (
    ExhaustedError,
    ExtractionError,
    InterviewEngineError,
    InvalidArgument,
    ServiceError,
)
from .extractor import extract_structured
from .gateway import ResilientCompletionGateway
from .schemas import (
    Answer,
    Difficulty,
    EvaluationResult,
    ParsingMethod,
    Question,
    QuickEvaluation,
    ResumeProfile,
)

__all__ = [
    'InterviewEngine',
    'ResilientCompletionGateway',
    'Settings',
    'load_settings',
    'extract_structured',
    'Answer',
    'Difficulty',
    'EvaluationResult',
    'ParsingMethod',
    'Question',
    'QuickEvaluation',
    'ResumeProfile',
    'InterviewEngineError',
    'ServiceError',
    'ExhaustedError',
    'ExtractionError',
    'InvalidArgument',
]
