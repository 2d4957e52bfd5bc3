"""
Resume text to ``ResumeProfile``.

A regex pass runs first. When it already finds the contact fields the
completion service is not called at all; otherwise the model's answer is merged
over the regex result, field by field.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import regex as re

from .config import ResumeSettings, RetrySettings
from .errors import InterviewEngineError
from .extractor import extract_structured
from .gateway import ResilientCompletionGateway
from .prompts import PromptBuilder
from .schemas import (
    PROFILE_LIST_FIELDS,
    PROFILE_TEXT_FIELDS,
    REQUIRED_PROFILE_FIELDS,
    ParsingMethod,
    ResumeProfile,
)

logger = logging.getLogger('resume_parser')

EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
US_PHONE_PATTERN = re.compile(r'(?<![\d+])(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}(?!\d)')
INTL_PHONE_PATTERN = re.compile(r'(?<!\d)\+\d{1,3}[-.\s]?\(?\d{1,4}\)?(?:[-.\s]?\d{2,4}){2,4}(?!\d)')

NAME_PATTERNS = [
    re.compile(r'^[ \t]*([A-Z][a-z]+[ \t][A-Z][a-z]+(?:[ \t][A-Z][a-z]+)?)[ \t]*$', re.MULTILINE),
    re.compile(r'Name[ \t]*:[ \t]*([A-Z][a-z]+[ \t][A-Z][a-z]+(?:[ \t][A-Z][a-z]+)?)', re.IGNORECASE),
    re.compile(r'^[ \t]*([A-Z]{2,}[ \t][A-Z]{2,}(?:[ \t][A-Z]{2,})?)[ \t]*$', re.MULTILINE),
]
NAME_LINE_PATTERN = re.compile(r"^[A-Za-z\s.'-]+$")
NAME_HEAD_LINES = 5
NOT_NAME_WORDS = {
    'resume', 'curriculum', 'vitae', 'cv', 'summary', 'profile', 'experience', 'education',
    'skills', 'projects', 'objective', 'engineer', 'developer', 'manager', 'contact',
    'certifications', 'languages', 'references', 'work', 'professional', 'technical',
}

LINKEDIN_PATTERN = re.compile(r'(?:https?://)?(?:www\.)?linkedin\.com/(?:in|pub)/[A-Za-z0-9\-_%]+', re.IGNORECASE)
GITHUB_PATTERN = re.compile(r'(?:https?://)?(?:www\.)?github\.com/[A-Za-z0-9\-_.]+', re.IGNORECASE)
WEBSITE_PATTERN = re.compile(r'(?:https?://|www\.)[A-Za-z0-9\-.]+\.[A-Za-z]{2,}(?:/[^\s,;)]*)?', re.IGNORECASE)

LOCATION_PATTERNS = [
    re.compile(r'^[ \t]*(?:Location|Address|City)[ \t]*:[ \t]*([^\n]+)', re.IGNORECASE | re.MULTILINE),
    re.compile(r'\b([A-Z][a-zA-Z]+(?:[ \t][A-Z][a-zA-Z]+)*,[ \t]*[A-Z]{2}(?:[ \t]+\d{5})?)\b'),
]

SECTION_LABELS = {
    'skills': ['Technical Skills', 'Core Skills', 'Skills', 'Programming Languages', 'Technologies', 'Tech Stack'],
    'experience': ['Professional Experience', 'Work Experience', 'Work History', 'Experience', 'Employment'],
    'education': ['Academic Background', 'Education'],
    'summary': ['Professional Summary', 'Career Objective', 'Summary', 'Profile', 'About Me', 'About',
                'Overview', 'Objective'],
    'certifications': ['Certifications', 'Certification', 'Certificates', 'Licenses'],
    'languages': ['Spoken Languages', 'Languages', 'Language'],
    'projects': ['Personal Projects', 'Key Projects', 'Project Experience', 'Notable Work', 'Projects',
                 'Portfolio'],
}
ALL_LABELS = sorted({label for labels in SECTION_LABELS.values() for label in labels}, key=len, reverse=True)
HEADING_PATTERN = re.compile(
    r'^[ \t]*(?:' + '|'.join(re.escape(label) for label in ALL_LABELS) + r')[ \t]*:?[ \t]*$',
    re.IGNORECASE,
)
BULLET_PREFIX = re.compile(r'^[\s]*[-•*▪◦]\s*')

TECH_KEYWORDS = [
    'JavaScript', 'TypeScript', 'Python', 'Java', 'C++', 'C#', 'Go', 'Rust', 'Swift', 'Kotlin',
    'PHP', 'Ruby', 'Scala', 'Dart', 'MATLAB', 'Objective-C',
    'HTML', 'CSS', 'SCSS', 'SASS', 'Tailwind', 'Bootstrap',
    'React', 'Vue', 'Angular', 'Svelte', 'jQuery', 'Next.js', 'Nuxt.js', 'Gatsby',
    'Node.js', 'Express', 'Django', 'Flask', 'FastAPI', 'Spring', 'ASP.NET', 'Laravel',
    'Ruby on Rails', 'Rails',
    'MongoDB', 'PostgreSQL', 'MySQL', 'Redis', 'Elasticsearch', 'Cassandra', 'DynamoDB',
    'Oracle', 'SQLite', 'MariaDB', 'Neo4j', 'Firebase', 'Supabase',
    'AWS', 'Azure', 'GCP', 'Google Cloud', 'Heroku', 'Vercel', 'Netlify',
    'Docker', 'Kubernetes', 'Jenkins', 'GitLab', 'GitHub Actions', 'Terraform', 'Ansible',
    'Git', 'CI/CD', 'REST', 'GraphQL', 'gRPC', 'Microservices', 'Webpack', 'Vite', 'Babel',
    'Jest', 'Cypress', 'Selenium', 'Postman',
]
# Keywords that are also ordinary English words only match with their exact casing
CASE_SENSITIVE_KEYWORDS = {
    'Go', 'Rust', 'Swift', 'Dart', 'Spring', 'Express', 'Rails', 'Oracle', 'Vite',
    'Babel', 'Jest', 'Git', 'REST', 'Vue', 'React', 'Ruby', 'Scala',
}
MAX_SKILLS = 20
MAX_CERTIFICATIONS = 10
MAX_LANGUAGES = 8
MAX_PROJECTS = 10
MAX_EXPERIENCE_CHARS = 800
MAX_SUMMARY_CHARS = 300

DEGREE_PATTERN = re.compile(
    r'\b(?:Bachelor|Master|Ph\.?D|B\.S\.|M\.S\.|B\.A\.|M\.A\.|MBA|B\.Tech|M\.Tech)[^\n]*'
)
INSTITUTION_PATTERN = re.compile(r'[^\n]*\b(?:University|College|Institute)\b[^\n]*')
JOB_TITLE_LABEL = re.compile(r'^[ \t]*(?:Current Position|Title|Position|Role)[ \t]*:[ \t]*([^\n]+)',
                             re.IGNORECASE | re.MULTILINE)
KNOWN_JOB_TITLES = re.compile(
    r'\b((?:Senior |Junior |Lead |Principal |Staff )?(?:Software Engineer|Web Developer|Full Stack Developer|'
    r'Frontend Developer|Backend Developer|DevOps Engineer|Data Scientist|Data Engineer|Product Manager|'
    r'Software Architect|Software Developer))\b',
    re.IGNORECASE,
)
CERTIFICATION_PATTERN = re.compile(
    r'\b((?:AWS|Azure|Google Cloud|Microsoft|Oracle|Cisco|CompTIA)[^\n,;]*?Certifi(?:ed|cation)[^\n,;]*)'
)
LANGUAGE_PHRASE = re.compile(r'\b(?:Fluent in|Speaks?|Native)[ \t]*:?[ \t]*([^\n]+)', re.IGNORECASE)
PROJECT_VERBS = ('developed', 'built', 'created', 'implemented', 'designed', 'architected',
                 'launched', 'delivered', 'engineered', 'deployed')
PROJECT_KINDS = ('application', 'app', 'website', 'system', 'platform', 'tool', 'api', 'service',
                 'portal', 'dashboard', 'library', 'framework')

AI_NULL_VALUES = {'', 'null', 'none', 'n/a', 'na', 'unknown', 'not provided', 'not available'}


def _unique(items: List[str], limit: int) -> List[str]:
    seen = set()
    result = []
    for item in items:
        key = item.lower()
        if key not in seen:
            seen.add(key)
            result.append(item)
    return result[:limit]


def _digits(value: str) -> str:
    return re.sub(r'\D', '', value)


def _with_scheme(url: str) -> str:
    return url if url.lower().startswith('http') else f"https://{url}"


class RuleBasedResumeExtractor:
    """Regex-only extraction; never calls the completion service."""

    def extract(self, text: str) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            'name': self.extract_name(text),
            'email': self.extract_email(text),
            'phone': self.extract_phone(text),
            'location': self.extract_location(text),
            'links': self.extract_links(text),
            'skills': self.extract_skills(text),
            'experience': self.extract_experience(text),
            'education': self.extract_education(text),
            'certifications': self.extract_certifications(text),
            'languages': self.extract_languages(text),
            'projects': self.extract_projects(text),
            'summary': self.extract_summary(text),
            'job_title': self.extract_job_title(text),
        }
        # Empty lists are reported as missing, like unset text fields
        return {key: (value or None) for key, value in fields.items()}

    # -- contact details

    def extract_name(self, text: str) -> Optional[str]:
        lines = [line.strip() for line in text.splitlines() if line.strip()]

        # Top lines first, in order, so a header name beats any later title-cased line
        for line in lines[:NAME_HEAD_LINES]:
            for pattern in NAME_PATTERNS:
                match = pattern.search(line)
                if match and self._plausible_name(match.group(1).strip()):
                    return match.group(1).strip()

        for pattern in NAME_PATTERNS:
            for match in pattern.finditer(text):
                candidate = match.group(1).strip()
                if self._plausible_name(candidate):
                    return candidate

        for line in lines[:NAME_HEAD_LINES]:
            words = line.split()
            if (2 <= len(words) <= 4 and 5 < len(line) < 50
                    and NAME_LINE_PATTERN.match(line) and self._plausible_name(line)):
                return line
        return None

    @staticmethod
    def _plausible_name(candidate: str) -> bool:
        return not any(word.lower().strip('.') in NOT_NAME_WORDS for word in candidate.split())

    def extract_email(self, text: str) -> Optional[str]:
        match = EMAIL_PATTERN.search(text)
        return match.group(0) if match else None

    def extract_phone(self, text: str) -> Optional[str]:
        for pattern in (US_PHONE_PATTERN, INTL_PHONE_PATTERN):
            for match in pattern.finditer(text):
                candidate = match.group(0).strip()
                if 10 <= len(_digits(candidate)) <= 15:
                    return candidate
        return None

    def extract_location(self, text: str) -> Optional[str]:
        for pattern in LOCATION_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
        return None

    def extract_links(self, text: str) -> List[str]:
        links = []
        for pattern in (LINKEDIN_PATTERN, GITHUB_PATTERN):
            match = pattern.search(text)
            if match:
                links.append(_with_scheme(match.group(0)))
        for match in WEBSITE_PATTERN.finditer(text):
            url = match.group(0).rstrip('.')
            if 'linkedin.com' in url.lower() or 'github.com' in url.lower():
                continue
            links.append(_with_scheme(url))
            break
        return links

    # -- sections

    def section(self, text: str, key: str) -> Optional[str]:
        """Body of a labelled section, either ``Label: body`` or a heading line followed by a block."""
        labels = '|'.join(re.escape(label) for label in SECTION_LABELS[key])
        inline = re.search(
            rf'^[ \t]*(?:{labels})[ \t]*:[ \t]*(\S[^\n]*(?:\n[^\n:]+)*)',
            text, re.IGNORECASE | re.MULTILINE,
        )
        if inline:
            return self._cut_at_heading(inline.group(1))
        heading = re.search(
            rf'^[ \t]*(?:{labels})[ \t]*:?[ \t]*\n((?:[ \t]*\S[^\n]*(?:\n|$))+)',
            text, re.IGNORECASE | re.MULTILINE,
        )
        if heading:
            return self._cut_at_heading(heading.group(1))
        return None

    @staticmethod
    def _cut_at_heading(block: str) -> Optional[str]:
        lines = []
        for line in block.splitlines():
            if HEADING_PATTERN.match(line):
                break
            lines.append(line)
        body = '\n'.join(lines).strip()
        return body or None

    @staticmethod
    def _split_items(block: str, separators: str = r'[,\n|;•]') -> List[str]:
        return [BULLET_PREFIX.sub('', item).strip() for item in re.split(separators, block)]

    def extract_skills(self, text: str) -> List[str]:
        skills = []
        block = self.section(text, 'skills')
        if block:
            skills.extend(item for item in self._split_items(block) if 1 < len(item) < 50)

        known = {skill.lower() for skill in skills}
        for keyword in TECH_KEYWORDS:
            if keyword.lower() in known:
                continue
            if self._mentions(text, keyword):
                skills.append(keyword)
                known.add(keyword.lower())
        return _unique(skills, MAX_SKILLS)

    @staticmethod
    def _mentions(text: str, keyword: str) -> bool:
        variants = {keyword}
        if keyword.endswith('.js'):
            variants.update({keyword[:-3] + 'JS', keyword.replace('.', '')})
        flags = 0 if keyword in CASE_SENSITIVE_KEYWORDS or len(keyword) <= 3 else re.IGNORECASE
        return any(
            re.search(rf'(?<!\w){re.escape(variant)}(?![\w+#])', text, flags)
            for variant in variants
        )

    def extract_experience(self, text: str) -> Optional[str]:
        block = self.section(text, 'experience')
        if block:
            return block[:MAX_EXPERIENCE_CHARS]

        entries = []
        for line in text.splitlines():
            stripped = line.strip()
            if KNOWN_JOB_TITLES.search(stripped) and len(stripped) > 20:
                entries.append(stripped)
        if entries:
            return '\n'.join(_unique(entries, 10))[:MAX_EXPERIENCE_CHARS]
        return None

    def extract_education(self, text: str) -> Optional[str]:
        block = self.section(text, 'education')
        if block:
            return block
        for pattern in (DEGREE_PATTERN, INSTITUTION_PATTERN):
            match = pattern.search(text)
            if match:
                return match.group(0).strip()
        return None

    def extract_job_title(self, text: str) -> Optional[str]:
        match = JOB_TITLE_LABEL.search(text) or KNOWN_JOB_TITLES.search(text)
        return match.group(1).strip() if match else None

    def extract_summary(self, text: str) -> Optional[str]:
        block = self.section(text, 'summary')
        return block[:MAX_SUMMARY_CHARS] if block else None

    def extract_certifications(self, text: str) -> List[str]:
        certifications = []
        block = self.section(text, 'certifications')
        if block:
            certifications.extend(item for item in self._split_items(block, r'[,\n|;]') if len(item) > 3)
        certifications.extend(match.strip() for match in CERTIFICATION_PATTERN.findall(text))
        return _unique(certifications, MAX_CERTIFICATIONS)

    def extract_languages(self, text: str) -> List[str]:
        languages = []
        sources = [self.section(text, 'languages')]
        phrase = LANGUAGE_PHRASE.search(text)
        if phrase:
            sources.append(phrase.group(1))
        for source in sources:
            if source:
                languages.extend(item for item in self._split_items(source, r'[,\n|;]') if 1 < len(item) < 20)
        return _unique(languages, MAX_LANGUAGES)

    def extract_projects(self, text: str) -> List[str]:
        projects = []
        block = self.section(text, 'projects')
        if block:
            items = [BULLET_PREFIX.sub('', line).strip() for line in block.splitlines()]
            projects.extend(item for item in items if 10 < len(item) < 300)

        for line in text.splitlines():
            if not BULLET_PREFIX.match(line):
                continue
            cleaned = BULLET_PREFIX.sub('', line).strip()
            lower = cleaned.lower()
            if (any(verb in lower for verb in PROJECT_VERBS)
                    and any(re.search(rf'\b{kind}\b', lower) for kind in PROJECT_KINDS)):
                projects.append(cleaned)
        return _unique(projects, MAX_PROJECTS)


class ResumeParser:
    def __init__(
        self,
        gateway: ResilientCompletionGateway,
        settings: Optional[ResumeSettings] = None,
        retry: Optional[RetrySettings] = None,
        extractor: Optional[RuleBasedResumeExtractor] = None,
    ):
        self.gateway = gateway
        self.settings = settings or ResumeSettings()
        self.retry = retry or RetrySettings()
        self.extractor = extractor or RuleBasedResumeExtractor()

    def parse(self, raw_text: str) -> ResumeProfile:
        if not isinstance(raw_text, str) or not raw_text.strip():
            logger.warning("Empty resume text, returning empty profile")
            return ResumeProfile(parsing_method=ParsingMethod.FALLBACK, confidence=self.settings.blank_confidence)

        rule_fields = self.extractor.extract(raw_text)
        if self._can_skip_ai(rule_fields):
            logger.info("Rule-based parse found all required fields, skipping AI call")
            return ResumeProfile(
                **rule_fields,
                parsing_method=ParsingMethod.FALLBACK,
                confidence=self.settings.rule_based_confidence,
            )

        try:
            prompt = PromptBuilder.resume_prompt(raw_text, self.settings.max_prompt_chars)
            raw = self.gateway.complete_with_resilience(prompt, self.retry.resume)
            ai_fields, confidence = self._from_ai(extract_structured(raw, 'object'))
        except InterviewEngineError as e:
            logger.warning(f"AI resume parsing failed, using rule-based result: {e}")
            return self._rule_based_profile(rule_fields)
        except Exception as e:
            logger.error(f"Unexpected AI resume parsing error: {e}", exc_info=True)
            return self._rule_based_profile(rule_fields)

        merged = {field: ai_fields.get(field) or rule_fields.get(field) for field in rule_fields}
        filled_by_rules = [field for field in rule_fields if not ai_fields.get(field) and rule_fields.get(field)]
        method = ParsingMethod.HYBRID if filled_by_rules else ParsingMethod.AI
        if filled_by_rules:
            logger.info(f"Rule-based values kept for: {', '.join(filled_by_rules)}")
        return ResumeProfile(**merged, parsing_method=method, confidence=confidence)

    def _can_skip_ai(self, fields: Dict[str, Any]) -> bool:
        if not all(fields.get(field) for field in REQUIRED_PROFILE_FIELDS):
            return False
        found = sum(1 for field in ('skills', 'experience') if fields.get(field))
        return found >= self.settings.skip_ai_min_optional_fields

    def _rule_based_profile(self, fields: Dict[str, Any]) -> ResumeProfile:
        if any(fields.get(field) for field in REQUIRED_PROFILE_FIELDS):
            confidence = self.settings.partial_confidence
        else:
            confidence = self.settings.empty_confidence
        return ResumeProfile(**fields, parsing_method=ParsingMethod.FALLBACK, confidence=confidence)

    # -- model output, treated as untrusted

    @staticmethod
    def _text(value: Any) -> Optional[str]:
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, (int, float)):
            value = str(value)
        if isinstance(value, list):
            value = '\n'.join(str(item).strip() for item in value if isinstance(item, (str, int, float)))
        if not isinstance(value, str):
            return None
        value = value.strip()
        return None if value.lower() in AI_NULL_VALUES else value

    @classmethod
    def _list(cls, value: Any) -> Optional[List[str]]:
        if isinstance(value, str):
            value = value.split(',')
        if not isinstance(value, list):
            return None
        items = [cls._text(item) for item in value if isinstance(item, (str, int, float))]
        return _unique([item for item in items if item], 50) or None

    @classmethod
    def _from_ai(cls, data: Dict[str, Any]) -> Tuple[Dict[str, Any], float]:
        fields: Dict[str, Any] = {field: cls._text(data.get(field)) for field in PROFILE_TEXT_FIELDS}
        fields['job_title'] = cls._text(data.get('jobTitle')) or cls._text(data.get('job_title'))
        if fields['email'] and not EMAIL_PATTERN.fullmatch(fields['email']):
            fields['email'] = None

        for field in PROFILE_LIST_FIELDS:
            fields[field] = cls._list(data.get(field))
        links = list(fields['links'] or [])
        for key in ('linkedIn', 'github', 'website'):
            link = cls._text(data.get(key))
            if link:
                links.append(link)
        fields['links'] = _unique(links, 10) or None

        confidence = data.get('confidence')
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = 0.5
        return fields, min(1.0, max(0.1, float(confidence)))
