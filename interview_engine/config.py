import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger('interview_config')

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / 'config' / 'interview.yaml'

# Primary key first, backup second.
CREDENTIAL_ENV_VARS = {
    'gemini': ('GEMINI_API_KEY', 'GEMINI_API_KEY_2'),
    'groq': ('GROQ_API_KEY', 'GROQ_API_KEY_2'),
}
CREDENTIAL_LABELS = ('primary', 'backup')


class LLMSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str = Field('gemini', pattern='^(gemini|groq)$')
    model: Optional[str] = None
    gemini_model: str = 'gemini-2.0-flash'
    groq_model: str = 'llama-3.3-70b-versatile'
    gemini_base_url: str = 'https://generativelanguage.googleapis.com/v1beta'
    timeout_seconds: float = Field(30.0, gt=0)
    temperature: float = Field(0.4, ge=0, le=2)
    max_tokens: int = Field(2048, gt=0)

    @property
    def model_name(self) -> str:
        if self.model:
            return self.model
        return self.groq_model if self.provider == 'groq' else self.gemini_model


class RetrySettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_delay_ms: int = Field(30000, ge=0)
    rate_limit_base_ms: int = Field(5000, ge=0)
    transient_base_ms: int = Field(2000, ge=0)
    jitter_ms: int = Field(1000, ge=0)

    # Attempts per credential for each operation.
    questions: int = Field(2, ge=1)
    batch_evaluation: int = Field(2, ge=1)
    individual_evaluation: int = Field(2, ge=1)
    quick_evaluation: int = Field(1, ge=1)
    summary: int = Field(1, ge=1)
    resume: int = Field(1, ge=1)


class ResumeSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # How many of (skills, experience) the rule-based pass must find, on top of
    # name/email/phone, before the AI call is skipped.
    skip_ai_min_optional_fields: int = Field(0, ge=0, le=2)
    rule_based_confidence: float = Field(0.8, ge=0, le=1)
    partial_confidence: float = Field(0.6, ge=0, le=1)
    empty_confidence: float = Field(0.2, ge=0, le=1)
    blank_confidence: float = Field(0.1, ge=0, le=1)
    max_prompt_chars: int = Field(12000, gt=0)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: str = 'INFO'
    directory: Optional[str] = None


class Credential(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    api_key: str = Field(..., min_length=1, repr=False)


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    llm: LLMSettings = Field(default_factory=LLMSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    resume: ResumeSettings = Field(default_factory=ResumeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    credentials: Tuple[Credential, ...] = ()


def _looks_like_placeholder(value: str) -> bool:
    lower = value.strip().lower()
    return lower.startswith('your_') or lower.startswith('replace_') or lower in {'changeme', 'todo'}


def load_credentials(provider: str, environ: Mapping[str, str]) -> Tuple[Credential, ...]:
    """Read the primary and backup API keys for a provider, skipping blanks and placeholders."""
    credentials = []
    for label, var in zip(CREDENTIAL_LABELS, CREDENTIAL_ENV_VARS.get(provider, ())):
        value = (environ.get(var) or '').strip()
        if not value or _looks_like_placeholder(value):
            continue
        credentials.append(Credential(label=label, api_key=value))
    if not credentials:
        logger.warning(f"No API key configured for provider '{provider}' - only fallback results will be produced")
    return tuple(credentials)


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning(f"Config file {path} not found, using built-in defaults")
        return {}
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


def load_settings(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build the process-wide settings.

    Values come from the YAML file (``path``, ``$INTERVIEW_CONFIG`` or
    ``config/interview.yaml``) and are overridden by ``LLM_PROVIDER`` and
    ``LLM_MODEL``. API keys are only ever read from the environment.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    config_path = Path(path or environ.get('INTERVIEW_CONFIG') or DEFAULT_CONFIG_PATH)
    raw = _read_yaml(config_path)

    llm = dict(raw.get('llm') or {})
    if environ.get('LLM_PROVIDER'):
        llm['provider'] = environ['LLM_PROVIDER'].strip().lower()
    if environ.get('LLM_MODEL'):
        llm['model'] = environ['LLM_MODEL'].strip()
    llm_settings = LLMSettings(**llm)

    settings = Settings(
        llm=llm_settings,
        retry=RetrySettings(**(raw.get('retry') or {})),
        resume=ResumeSettings(**(raw.get('resume') or {})),
        logging=LoggingSettings(**(raw.get('logging') or {})),
        credentials=load_credentials(llm_settings.provider, environ),
    )
    logger.info(
        f"Loaded settings: provider={llm_settings.provider} model={llm_settings.model_name} "
        f"credentials={[c.label for c in settings.credentials]}"
    )
    return settings
