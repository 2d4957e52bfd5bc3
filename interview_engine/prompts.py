import json
from datetime import datetime
from typing import List, Optional, Sequence

from .schemas import QUESTION_COUNT, QUESTIONS_PER_DIFFICULTY, TIME_LIMITS, Answer, Question

QUESTION_CATEGORIES = ('Frontend', 'Backend', 'Database', 'System Design', 'Algorithms', 'Security')
RESUME_EXCERPT_CHARS = 1500
SUMMARY_FEEDBACK_CHARS = 100


def _quoted(text: Optional[str]) -> str:
    """Embed free text in a prompt as a JSON string literal."""
    return json.dumps(text or "", ensure_ascii=False)


class PromptBuilder:
    """Deterministic prompt text for every completion the engine requests."""

    @classmethod
    def question_prompt(
        cls,
        candidate_name: str,
        session_id: str,
        timestamp: datetime,
        skills: Optional[Sequence[str]] = None,
        resume_text: Optional[str] = None,
    ) -> str:
        context = f"Generate {QUESTION_COUNT} interview questions for {candidate_name or 'the candidate'}."
        if skills:
            context += f" Skills: {', '.join(list(skills)[:5])}."

        tiers = "\n".join(
            f"- {count} {difficulty.value} questions ({TIME_LIMITS[difficulty]} seconds each)"
            for difficulty, count in QUESTIONS_PER_DIFFICULTY.items()
        )
        resume_section = ""
        if resume_text and resume_text.strip():
            resume_section = f"\nRESUME EXCERPT:\n{resume_text.strip()[:RESUME_EXCERPT_CHARS]}\n"

        return f"""{context}

SESSION INFO: Interview #{session_id} at {timestamp.strftime('%Y-%m-%d %H:%M:%S')}
{resume_section}
Create exactly {QUESTION_COUNT} UNIQUE technical interview questions:
{tiers}

Easy questions focus on practical basics, medium questions on problem-solving
scenarios, hard questions on architecture and design trade-offs.

Cover these categories across the set: {', '.join(QUESTION_CATEGORIES)}.
Avoid repetitive patterns and make every question specific and actionable.

Return ONLY a valid JSON array, no markdown:
[
  {{"text": "Scenario-based question with specific context", "difficulty": "easy", "category": "Frontend"}},
  {{"text": "Problem-solving question with real-world application", "difficulty": "medium", "category": "Backend"}},
  {{"text": "Design question requiring trade-off analysis", "difficulty": "hard", "category": "System Design"}}
]"""

    @classmethod
    def batch_evaluation_prompt(cls, pairs: Sequence[tuple]) -> str:
        """``pairs`` holds (question, answer) tuples in answer order."""
        blocks: List[str] = []
        for number, (question, answer) in enumerate(pairs, start=1):
            blocks.append(
                f"QUESTION {number}: {_quoted(question.text)}\n"
                f"ANSWER {number}: {_quoted(answer.text)}\n"
                f"TIME: {answer.time_spent_seconds}s/{question.time_limit_seconds}s\n"
                f"DIFFICULTY: {question.difficulty.value}\n"
                f"CATEGORY: {question.category or 'General'}"
            )
        count = len(pairs)
        joined = "\n\n".join(blocks)
        return f"""Evaluate all {count} interview answers in batch (1-10 scale each):

{joined}

Return ONLY valid JSON with this exact structure (NO extra text, NO markdown):
{{
  "evaluations": [
    {{
      "score": 7,
      "feedback": "Brief evaluation feedback",
      "strengths": ["strength1", "strength2"],
      "improvements": ["improvement1", "improvement2"]
    }}
  ],
  "overallScore": 7.2
}}

Provide exactly {count} evaluations in the evaluations array, one for each question in order."""

    @classmethod
    def answer_evaluation_prompt(cls, question: Question, answer: Answer) -> str:
        return f"""Evaluate this interview answer (1-10 scale):

Question: {_quoted(question.text)}
Answer: {_quoted(answer.text)}
Time: {answer.time_spent_seconds}s/{question.time_limit_seconds}s
Difficulty: {question.difficulty.value}

Return ONLY JSON:
{{
  "score": 7,
  "feedback": "feedback here",
  "strengths": ["strength1", "strength2"],
  "improvements": ["improvement1", "improvement2"]
}}"""

    @classmethod
    def quick_evaluation_prompt(cls, question: Question, answer: Answer) -> str:
        return f"""Provide brief evaluation for this interview answer (1-10 scale):

QUESTION: {_quoted(question.text)}
ANSWER: {_quoted(answer.text)}
TIME: {answer.time_spent_seconds}s / {question.time_limit_seconds}s

Give quick feedback in JSON format:
{{
  "score": 7,
  "feedback": "Brief 1-2 sentence evaluation",
  "strengths": ["one strength"],
  "improvements": ["one improvement tip"]
}}"""

    @classmethod
    def summary_prompt(cls, answers: Sequence[Answer], final_score: float) -> str:
        scores = ", ".join(f"{answer.score:g}" for answer in answers)
        feedback = "\n".join(
            f"Q{number}: {(answer.feedback or 'No feedback')[:SUMMARY_FEEDBACK_CHARS]}"
            for number, answer in enumerate(answers, start=1)
        )
        return f"""Write a professional interview summary based on the evaluation results.

Final Score: {final_score}/10
Total Questions: {len(answers)}
Individual Scores: {scores}

Key Feedback Points:
{feedback}

Create a concise 2-3 paragraph professional summary covering:
1. Overall performance assessment
2. Key technical strengths demonstrated
3. Areas for improvement
4. Final recommendation for hiring consideration

Keep it professional and specific to the candidate's responses."""

    @classmethod
    def resume_prompt(cls, resume_text: str, max_chars: int) -> str:
        return f"""You are an expert resume parser. Analyze this resume and extract all available structured information.

RESUME TEXT:
{resume_text[:max_chars]}

Return ONLY a JSON object with this structure:
{{
  "name": "Full Name or null",
  "email": "email@example.com or null",
  "phone": "+1234567890 or null",
  "location": "City, State/Country or null",
  "linkedIn": "linkedin.com/in/profile or null",
  "github": "github.com/username or null",
  "website": "website.com or null",
  "jobTitle": "Current/Recent Job Title or null",
  "summary": "Professional summary or null",
  "skills": ["skill1", "skill2"] or null,
  "experience": "Work experience details or null",
  "education": "Education details or null",
  "certifications": ["cert1", "cert2"] or null,
  "languages": ["English", "Spanish"] or null,
  "projects": ["Project: Description"] or null,
  "confidence": 0.85
}}

CRITICAL: Return ONLY the JSON object, no other text. Set confidence between 0.1-1.0 based on data quality."""
