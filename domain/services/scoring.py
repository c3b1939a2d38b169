import re
from typing import Dict, List, Optional

CV_WEIGHTS = {
    "technical_skills": 0.40,
    "experience_level": 0.25,
    "relevant_achievements": 0.20,
    "cultural_fit": 0.15,
}

PROJECT_WEIGHTS = {
    "correctness": 0.30,
    "code_quality": 0.25,
    "resilience": 0.20,
    "documentation": 0.15,
    "creativity": 0.10,
}

FILLER_SENTENCES = [
    "Candidate demonstrates baseline alignment with role expectations.",
    "There are clear opportunities for growth in advanced architectural and AI integration aspects.",
    "Recommended for further interview to validate depth of experience.",
]

MOCK_CLOSING = "Candidate shows potential; further interview recommended."

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
_TERMINAL = re.compile(r"[.!?]$")


def _weighted(scores: Dict[str, float], weights: Dict[str, float]) -> float:
    return sum(float(scores[name]) * w for name, w in weights.items())


def weighted_cv(scores: Dict[str, float]) -> float:
    return _weighted(scores, CV_WEIGHTS)


def weighted_project(scores: Dict[str, float]) -> float:
    return _weighted(scores, PROJECT_WEIGHTS)


def criterion_scores(evaluation: Dict, weights: Dict[str, float]) -> Dict[str, float]:
    """Pull the bare 1-5 numbers out of an evaluation dict ({name: {score, feedback}})."""
    return {name: evaluation[name]["score"] for name in weights}


def cv_match_rate(cv_evaluation: Optional[Dict]) -> Optional[float]:
    if not cv_evaluation:
        return None
    # 1-5 scale onto 0-1
    return round(weighted_cv(criterion_scores(cv_evaluation, CV_WEIGHTS)) * 0.2, 2)


def project_score(project_evaluation: Optional[Dict]) -> Optional[float]:
    if not project_evaluation:
        return None
    return round(weighted_project(criterion_scores(project_evaluation, PROJECT_WEIGHTS)), 2)


def split_sentences(text: str) -> List[str]:
    flat = re.sub(r"\n+", " ", text or "")
    return [s.strip() for s in _SENTENCE_END.split(flat) if s.strip()]


def enforce_sentence_constraint(text: str, min_sentences: int = 3, max_sentences: int = 5) -> str:
    sentences = split_sentences(text)
    fillers = iter(FILLER_SENTENCES)
    while len(sentences) < min_sentences:
        nxt = next(fillers, None)
        if nxt is None:
            break
        sentences.append(nxt)
    while len(sentences) < min_sentences:
        sentences.append(sentences[-1])
    sentences = sentences[:max_sentences]
    return " ".join(s if _TERMINAL.search(s) else s + "." for s in sentences)


def _first_sentence(text: Optional[str]) -> Optional[str]:
    sentences = split_sentences(text or "")
    return sentences[0] if sentences else None


def preliminary_summary(job_title: str, match_rate: Optional[float], proj_score: Optional[float],
                        cv_summary: Optional[str] = None, project_summary: Optional[str] = None) -> str:
    parts = [
        f"Job Title: {job_title}.",
        f"CV match rate: {match_rate if match_rate is not None else 'N/A'} (0-1).",
        f"Project Score: {proj_score if proj_score is not None else 'N/A'} (1-5).",
    ]
    for summary in (cv_summary, project_summary):
        first = _first_sentence(summary)
        if first:
            parts.append(first)
    return " ".join(parts)
