CV_EVAL_PROMPT = """
You are an impartial HR evaluator assessing how well a candidate's CV aligns with the job requirements and the provided References.

JOB TITLE: {job_title}

RETRIEVED CONTEXT (job description, top-k chunks):
{job_description}

RETRIEVED CONTEXT (CV scoring rubric, top-k chunks):
{rubric_cv}

CV CONTENT:
{cv_text}

Evaluation rules:
- Base every judgment on the CV content and the References above.
- Quote or paraphrase short evidence snippets (max 1-2 lines) to justify each feedback.
- Do NOT infer missing data. High scores require multiple strong, explicit matches.

Score each parameter from 1 to 5:
1. technical_skills: backend, databases, APIs, cloud, AI/LLM exposure
2. experience_level: years of experience and project complexity
3. relevant_achievements: impact of past work (scaling, performance, adoption)
4. cultural_fit: communication, learning mindset, teamwork/leadership

Return ONLY strict JSON:
{{
  "technical_skills": {{"score": <1-5>, "feedback": "<explanation>"}},
  "experience_level": {{"score": <1-5>, "feedback": "<explanation>"}},
  "relevant_achievements": {{"score": <1-5>, "feedback": "<explanation>"}},
  "cultural_fit": {{"score": <1-5>, "feedback": "<explanation>"}},
  "overall_summary": "<3-5 sentences with strengths, gaps, recommendations>"
}}
"""


PROJECT_EVAL_PROMPT = """
You are an impartial technical evaluator assessing a candidate's Project Report using the provided References.

PROJECT REPORT:
{project_text}

RETRIEVED CONTEXT (case study brief, top-k chunks):
{case_brief}

RETRIEVED CONTEXT (project scoring rubric, top-k chunks):
{rubric_project}

Evaluation rules:
- Base every judgment on the report and the References above.
- Do NOT invent criteria. Assign high scores only when evidence clearly supports them.

Score each parameter from 1 to 5:
1. correctness: prompt design, LLM chaining, RAG context injection
2. code_quality: clean, modular, reusable, tested
3. resilience: long-running jobs, retries, randomness, API failures
4. documentation: README clarity, setup instructions, trade-off explanations
5. creativity: extra features beyond requirements

Return ONLY strict JSON:
{{
  "correctness": {{"score": <1-5>, "feedback": "<explanation>"}},
  "code_quality": {{"score": <1-5>, "feedback": "<explanation>"}},
  "resilience": {{"score": <1-5>, "feedback": "<explanation>"}},
  "documentation": {{"score": <1-5>, "feedback": "<explanation>"}},
  "creativity": {{"score": <1-5>, "feedback": "<explanation>"}},
  "overall_summary": "<3-5 sentences with strengths, gaps, recommendations>"
}}
"""


FINAL_SUMMARY_PROMPT = """You are a senior technical recruiter.
Given the following intermediate evaluation results, produce a concise 3-5 sentence overall summary highlighting strengths, gaps, and a recommendation.

INTERMEDIATE:
JOB_TITLE: {job_title}
CV_MATCH_RATE: {cv_match_rate}
PROJECT_SCORE: {project_score}
CV_FEEDBACK: {cv_feedback}
PROJECT_FEEDBACK: {project_feedback}

Return only the summary text.
"""


def format_refs(refs, label: str) -> str:
    return "\n".join(f"[{label}_{i + 1}] {r}" for i, r in enumerate(refs or []))
