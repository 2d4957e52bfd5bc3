"""
Deterministic, offline twin of every AI-backed step.

Nothing in this module touches the network. Question selection is the only
randomized part; scoring, feedback and summaries are pure functions of their
inputs so the interview never stalls on a flaky completion service.
"""
import logging
import math
import random
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .schemas import (
    MAX_FEEDBACK_ITEMS,
    QUESTIONS_PER_DIFFICULTY,
    TIME_LIMITS,
    Answer,
    Difficulty,
    Question,
    QuickEvaluation,
)

logger = logging.getLogger('fallback_engine')

# (question text, category), four per tier
QUESTION_POOL: Dict[Difficulty, List[Tuple[str, str]]] = {
    Difficulty.EASY: [
        ("Explain the difference between let, const, and var in JavaScript.", "JavaScript"),
        ("What are React hooks and how do you use useState?", "React"),
        ("What is the difference between == and === in JavaScript?", "JavaScript"),
        ("Explain what CSS flexbox is and give a practical example.", "Frontend"),
    ],
    Difficulty.MEDIUM: [
        ("How would you optimize a slow database query?", "Database"),
        ("Explain how you implement user authentication in a web application.", "Security"),
        ("Describe how you would handle error handling in a REST API.", "Backend"),
        ("How would you implement real-time updates in a web application?", "Frontend"),
    ],
    Difficulty.HARD: [
        ("Design a scalable chat application architecture for 1 million users.", "System Design"),
        ("How would you implement caching for a high-traffic e-commerce website?", "Performance"),
        ("Design a microservices architecture for an online banking system.", "System Design"),
        ("How would you implement a distributed rate limiting system?", "Architecture"),
    ],
}

TECH_TERMS = (
    'api', 'database', 'component', 'state', 'props', 'async', 'await', 'promise',
    'server', 'client', 'framework', 'library', 'algorithm', 'data', 'structure',
    'security', 'performance', 'optimization', 'design', 'pattern', 'architecture',
    'testing', 'deployment', 'scaling', 'monitoring', 'debugging', 'error', 'handling',
    'validation', 'authentication', 'authorization', 'http', 'rest', 'graphql', 'json',
    'xml', 'html', 'css', 'javascript', 'typescript', 'python', 'java', 'react', 'vue',
    'angular', 'node', 'express', 'django', 'flask', 'spring', 'kubernetes', 'docker',
    'aws', 'azure', 'gcp', 'git', 'ci/cd', 'agile', 'scrum', 'devops', 'cache', 'index',
    'query', 'sql', 'thread', 'concurrency', 'latency', 'microservice', 'microservices',
)
TECH_TERM_PATTERN = re.compile(
    r'(?<![\w/])(' + '|'.join(re.escape(term) for term in TECH_TERMS) + r')(?![\w/])',
    re.IGNORECASE,
)
FENCED_CODE_PATTERN = re.compile(r'```')
CODE_HINT_PATTERN = re.compile(r'`\w+`|\b(?:function|const|class|let|var|def|return)\b')

SERVICE_UNAVAILABLE_PREFIX = "AI service temporarily unavailable. Score calculated using backup analysis:"
BACKUP_ANALYSIS_PREFIX = "Answer evaluated using backup analysis:"
FALLBACK_PREFIXES = (SERVICE_UNAVAILABLE_PREFIX, BACKUP_ANALYSIS_PREFIX)

SERVICE_NOTE = (
    "*Note: AI service was temporarily unavailable during evaluation. "
    "This summary was generated using backup analysis.*"
)


# ---------------------------------------------------------------- questions

def draw_questions(
    difficulty: Difficulty,
    count: int,
    exclude_texts: Iterable[str] = (),
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """Draw up to ``count`` pool questions of one tier, skipping texts already in use."""
    rng = rng or random.Random()
    excluded = {text.strip().lower() for text in exclude_texts}
    pool = [
        (number, text, category)
        for number, (text, category) in enumerate(QUESTION_POOL[difficulty], start=1)
        if text.lower() not in excluded
    ]
    picked = rng.sample(pool, min(count, len(pool)))
    return [
        Question(
            id=f"fallback_{difficulty.value}_{number}",
            text=text,
            difficulty=difficulty,
            time_limit_seconds=TIME_LIMITS[difficulty],
            category=category,
        )
        for number, text, category in picked
    ]


def select_questions(rng: Optional[random.Random] = None) -> List[Question]:
    """Two questions per tier, ordered easy, medium, hard."""
    rng = rng or random.Random()
    questions: List[Question] = []
    for difficulty, count in QUESTIONS_PER_DIFFICULTY.items():
        questions.extend(draw_questions(difficulty, count, rng=rng))
    logger.info(f"Selected {len(questions)} fallback questions")
    return questions


# ------------------------------------------------------------------ scoring

@dataclass(frozen=True)
class AnswerSignals:
    word_count: int
    has_fenced_code: bool
    has_code_hints: bool
    tech_term_count: int

    @property
    def has_code(self) -> bool:
        return self.has_fenced_code or self.has_code_hints

    @property
    def has_tech_terms(self) -> bool:
        return self.tech_term_count > 0


def analyze_answer(text: str) -> AnswerSignals:
    text = text or ""
    words = [word for word in text.split() if len(word) > 2]
    terms = {match.lower() for match in TECH_TERM_PATTERN.findall(text)}
    return AnswerSignals(
        word_count=len(words),
        has_fenced_code=bool(FENCED_CODE_PATTERN.search(text)),
        has_code_hints=bool(CODE_HINT_PATTERN.search(text)),
        tech_term_count=len(terms),
    )


def time_adjustment(time_spent: float, time_limit: Optional[float]) -> float:
    """+0.5 for finishing within half the limit, -0.5 at 90% of it or beyond."""
    if not time_limit or time_limit <= 0 or time_spent <= 0:
        return 0.0
    ratio = time_spent / time_limit
    if ratio <= 0.5:
        return 0.5
    if ratio >= 0.9:
        return -0.5
    return 0.0


def round_half_step(score: float) -> float:
    """Round to the nearest 0.5, halves rounding up."""
    return math.floor(score * 2 + 0.5) / 2


def _score_from_signals(signals: AnswerSignals, time_spent: float, time_limit: Optional[float]) -> float:
    score = 5.0

    if signals.word_count >= 50:
        score += 2
    elif signals.word_count >= 30:
        score += 1.5
    elif signals.word_count >= 15:
        score += 1
    elif signals.word_count < 5:
        score -= 2

    if signals.has_fenced_code:
        score += 1.5
    elif signals.has_code_hints:
        score += 1

    if signals.tech_term_count >= 3:
        score += 1
    elif signals.tech_term_count >= 1:
        score += 0.5

    # A near-empty answer submitted quickly is not efficient.
    if signals.word_count >= 5:
        score += time_adjustment(time_spent, time_limit)

    return max(1.0, min(10.0, round_half_step(score)))


def heuristic_score(text: str, time_spent: float = 0, time_limit: Optional[float] = None) -> float:
    """Score an answer in [1, 10] from its text and timing alone."""
    return _score_from_signals(analyze_answer(text), time_spent, time_limit)


# ----------------------------------------------------------------- feedback

def score_feedback(score: float) -> str:
    if score >= 8.5:
        return 'Excellent technical depth and understanding demonstrated.'
    if score >= 7:
        return 'Strong technical knowledge with good explanations.'
    if score >= 5.5:
        return 'Good understanding with room for more detail.'
    if score >= 4:
        return 'Basic understanding shown, needs more technical depth.'
    return 'Consider providing more comprehensive technical explanations.'


def strengths_for(score: float, signals: AnswerSignals, limit: int = MAX_FEEDBACK_ITEMS) -> List[str]:
    strengths = []
    if score >= 7:
        strengths.append('Strong technical understanding')
    if signals.has_code:
        strengths.append('Provided code examples')
    if signals.has_tech_terms:
        strengths.append('Used appropriate technical terminology')
    if signals.word_count >= 30:
        strengths.append('Comprehensive response')
    if score >= 6:
        strengths.append('Good problem-solving approach')
    return (strengths or ['Answer provided'])[:limit]


def improvements_for(score: float, signals: AnswerSignals, limit: int = MAX_FEEDBACK_ITEMS) -> List[str]:
    improvements = []
    if score < 6:
        improvements.append('Add more technical detail and depth')
    if signals.word_count < 20:
        improvements.append('Expand explanations with more examples')
    if not signals.has_code and score < 8:
        improvements.append('Consider including code examples')
    if not signals.has_tech_terms:
        improvements.append('Use more specific technical terminology')
    if score < 5:
        improvements.append('Focus on demonstrating practical knowledge')
    return (improvements or ['Continue building technical skills'])[:limit]


def fallback_feedback(score: float, service_unavailable: bool = False) -> str:
    prefix = SERVICE_UNAVAILABLE_PREFIX if service_unavailable else BACKUP_ANALYSIS_PREFIX
    return f"{prefix} {score_feedback(score)}"


def is_fallback_feedback(feedback: Optional[str]) -> bool:
    """True when the feedback text was produced by this module."""
    if not feedback:
        return False
    return any(prefix in feedback for prefix in FALLBACK_PREFIXES)


def heuristic_evaluation(
    text: str,
    time_spent: float = 0,
    time_limit: Optional[float] = None,
    service_unavailable: bool = False,
    max_items: int = MAX_FEEDBACK_ITEMS,
) -> QuickEvaluation:
    signals = analyze_answer(text)
    score = _score_from_signals(signals, time_spent, time_limit)
    return QuickEvaluation(
        score=score,
        feedback=fallback_feedback(score, service_unavailable),
        strengths=strengths_for(score, signals, max_items),
        improvements=improvements_for(score, signals, max_items),
    )


def evaluate_answer(answer: Answer, time_limit: Optional[float], service_unavailable: bool = False) -> Answer:
    """Heuristic evaluation of one answer, returned as an evaluated copy."""
    result = heuristic_evaluation(answer.text, answer.time_spent_seconds, time_limit, service_unavailable)
    return answer.with_evaluation(result.score, result.feedback, result.strengths, result.improvements)


def evaluate_answers(
    questions: Sequence[Question],
    answers: Sequence[Answer],
    service_unavailable: bool = False,
) -> List[Answer]:
    limits = {question.id: question.time_limit_seconds for question in questions}
    return [evaluate_answer(answer, limits.get(answer.question_id), service_unavailable) for answer in answers]


def quick_evaluation(question: Question, answer: Answer, service_unavailable: bool = False) -> QuickEvaluation:
    """Heuristic result for the quick path: one strength and one improvement."""
    return heuristic_evaluation(
        answer.text,
        answer.time_spent_seconds,
        question.time_limit_seconds,
        service_unavailable,
        max_items=1,
    )


# ------------------------------------------------------------------ summary

def _assessment(final_score: float) -> Tuple[str, str]:
    if final_score >= 8:
        return (
            'Outstanding performance with excellent technical depth and understanding.',
            'Strong candidate with comprehensive knowledge. Highly recommended for technical roles.',
        )
    if final_score >= 6.5:
        return (
            'Good performance demonstrating solid technical competency.',
            'Capable candidate with good technical foundation. Recommended for most technical positions.',
        )
    if final_score >= 5:
        return (
            'Adequate performance with room for technical improvement.',
            'Shows potential but would benefit from additional technical development and preparation.',
        )
    return (
        'Performance indicates need for significant technical development.',
        'Extensive preparation and skill development recommended before pursuing technical roles.',
    )


def _analysis(final_score: float) -> str:
    if final_score >= 7:
        return ('Candidate demonstrated strong technical knowledge with well-structured responses '
                'and appropriate use of technical concepts.')
    if final_score >= 5:
        return ('Candidate showed basic technical understanding but responses could benefit from '
                'more depth and specific examples.')
    return 'Candidate needs significant improvement in technical knowledge and problem-solving approach.'


def fallback_summary(answers: Sequence[Answer], final_score: float, service_unavailable: bool = False) -> str:
    """Templated interview summary built from scores and timings only."""
    count = len(answers)
    total_time = sum(answer.time_spent_seconds for answer in answers)
    average_time = round(total_time / count) if count else 0
    strong = sum(1 for answer in answers if answer.score >= 7)
    weak = sum(1 for answer in answers if answer.score < 5)
    assessment, recommendation = _assessment(final_score)

    strengths = []
    if strong:
        strengths.append(f"• Performed well on {strong} questions, showing good technical comprehension")
    elif count:
        strengths.append("• Attempted all questions with basic understanding")
    strengths.append("• Completed interview within reasonable time frame")
    if final_score >= 6:
        strengths.append("• Demonstrated problem-solving abilities")

    improvements = []
    if weak:
        improvements.append(f"• {weak} responses need significant improvement in technical depth")
    improvements.extend([
        "• Focus on providing more detailed technical explanations",
        "• Practice with specific examples and code implementations",
        "• Strengthen fundamental technical concepts",
    ])

    sections = [
        "**INTERVIEW PERFORMANCE SUMMARY**",
        f"**Overall Assessment:** {assessment}",
        "\n".join([
            "**Key Metrics:**",
            f"• Final Score: {final_score:.1f}/10",
            f"• Questions Completed: {count}",
            f"• Average Time per Question: {average_time} seconds",
            f"• Strong Responses: {strong}/{count}",
            f"• Responses Needing Improvement: {weak}/{count}",
        ]),
        f"**Performance Analysis:**\n{_analysis(final_score)}",
        "**Areas of Strength:**\n" + "\n".join(strengths),
        "**Areas for Improvement:**\n" + "\n".join(improvements),
        f"**Recommendation:** {recommendation}",
    ]
    if service_unavailable:
        sections.append(SERVICE_NOTE)
    return "\n\n".join(sections)
