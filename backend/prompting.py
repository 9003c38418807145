from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from models import ms_to_date_str

Message = Dict[str, Any]

ASSISTANT_PREFIX = "You are Dorothy, a medical education AI assistant specializing in"

DOMAIN_FOCUS: Dict[str, str] = {
    "general": (
        "general medicine. Provide balanced, well-structured explanations that cover key concepts clearly. "
        "Include clinical relevance when appropriate."
    ),
    "pathology": (
        "pathology. Focus on disease mechanisms, histological features and pathogenesis. Explain cellular and "
        "tissue changes with precise terminology and connect them to clinical presentations. Organize answers "
        "from etiology through manifestations, including key staining techniques and microscopic findings when relevant."
    ),
    "pharmacology": (
        "pharmacology. Emphasize drug mechanisms, pharmacokinetics, pharmacodynamics and clinical applications. "
        "Explain the mechanism first, then clinical uses, important adverse effects and drug interactions. "
        "Use clear examples to illustrate therapeutic implications and dosing considerations."
    ),
    "anatomy": (
        "anatomy. Provide precise descriptions of anatomical structures, spatial relationships and clinical "
        "correlations. Use clear organizational principles (proximal to distal, superficial to deep) and highlight "
        "clinically relevant landmarks and common variations."
    ),
    "physiology": (
        "physiology. Explain functional mechanisms at molecular, cellular and systems levels. Emphasize regulatory "
        "processes, homeostasis and integration between systems, with clear cause-effect relationships and "
        "quantitative parameters when appropriate. Connect normal function to pathological states."
    ),
    "diagnosis": (
        "medical diagnosis. Present systematic approaches to differential diagnosis with emphasis on clinical "
        "reasoning and diagnostic criteria. Order differentials by probability and danger. Include key history "
        "elements, physical findings and appropriate diagnostic tests with interpretation guidelines."
    ),
    "treatment": (
        "medical treatment. Focus on evidence-based therapeutic approaches with clear indications, contraindications "
        "and expected outcomes. Organize recommendations as first, second and third-line options with dosing when "
        "appropriate, and include monitoring parameters and adjustments for special populations."
    ),
    "emergency": (
        "emergency medicine. Emphasize rapid assessment, triage principles and time-sensitive interventions. "
        "Prioritize life-threatening conditions first with clear stabilization steps, and include emergency "
        "medication dosing and immediate management steps."
    ),
    "pediatrics": (
        "pediatric medicine. Focus on age-specific considerations and developmental context. Include weight-based "
        "dosing, normal developmental parameters and family-centered care, and point out how presentations differ "
        "from adult medicine."
    ),
    "geriatrics": (
        "geriatric medicine. Address age-related physiological changes, multimorbidity and polypharmacy. Include "
        "geriatric syndromes, fall prevention, cognitive assessment and care coordination, keeping quality of life "
        "and goals of care in view."
    ),
}

CITATION_INSTRUCTIONS = (
    "Incorporate the relevant medical literature in your response. Cite specific articles using [1], [2], etc. "
    "numbers that correspond to the references provided. Give attribution to all specific facts that come from "
    "these sources."
)

FACT_REVIEW_PROMPT = (
    "You are a medical fact-checking assistant. Review medical information for accuracy. Identify any potentially "
    "misleading or incorrect statements and provide brief corrections. Focus only on significant factual issues "
    "that could impact clinical understanding or patient care. For each issue, note the confidence of your "
    "assessment (Low/Medium/High). If everything is accurate, say \"No issues found\"."
)

DEFAULT_IMAGE_PROMPT = (
    "Please analyze this medical image and explain what it shows. Identify key structures, any pathological "
    "findings, and explain the educational significance."
)

WELLNESS_MOODS = ("great", "good", "okay", "stressed", "overwhelmed", "exhausted", "anxious", "sad", "frustrated")


def system_prompt_for(domain: str) -> str:
    focus = DOMAIN_FOCUS.get(domain, DOMAIN_FOCUS["general"])
    return f"{ASSISTANT_PREFIX} {focus}"


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _image_content(text: str, image_url: str) -> List[Dict[str, Any]]:
    return [
        {"type": "text", "text": text},
        {"type": "image_url", "image_url": {"url": image_url}},
    ]


def qa_messages(question: str, domain: str, literature_context: Optional[str] = None) -> List[Message]:
    system = system_prompt_for(domain)
    if literature_context is None:
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": question},
        ]
    return [
        {"role": "system", "content": f"{system}\n\n{CITATION_INSTRUCTIONS}"},
        {"role": "user", "content": question},
        {"role": "assistant", "content": "I'll help answer this medical question using relevant literature."},
        {"role": "user", "content": f"Please use these references in your answer:\n{literature_context}"},
    ]


def fact_review_messages(answer: str) -> List[Message]:
    return [
        {"role": "system", "content": FACT_REVIEW_PROMPT},
        {"role": "user", "content": f"Please verify this medical response for accuracy:\n\n{answer}"},
    ]


def image_question_messages(question: str, image_url: str, domain: str) -> List[Message]:
    system = (
        f"{system_prompt_for(domain)} Analyze both the text question and the provided image "
        "to give a comprehensive answer."
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": _image_content(question, image_url)},
    ]


def image_analysis_messages(image_url: str, prompt: Optional[str] = None) -> List[Message]:
    system = (
        f"{ASSISTANT_PREFIX} analyzing medical images. Provide detailed, accurate descriptions of medical imagery "
        "with educational context: visible findings, potential diagnoses, key features and teaching points."
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": _image_content(prompt or DEFAULT_IMAGE_PROMPT, image_url)},
    ]


def flashcard_messages(topic: str, content: Optional[str] = None) -> List[Message]:
    if content:
        source = f"Content: {content}"
    else:
        source = "Create general flashcards on this medical topic without specific content to reference."
    return [
        {
            "role": "system",
            "content": (
                "Create high-yield medical flashcards focusing on key concepts, clinical correlations and "
                "board-relevant points. Format as a JSON array of objects with 'front' and 'back' properties. "
                "ALWAYS return a valid JSON array, even if empty."
            ),
        },
        {"role": "user", "content": f"Generate flashcards for: {topic}\n\n{source}"},
    ]


def summary_messages(content: str) -> List[Message]:
    return [
        {
            "role": "system",
            "content": (
                "Create concise, structured summaries of medical notes. Focus on key points, clinical pearls and "
                "high-yield concepts. Use clear headings and bullet points, prioritizing clinically relevant "
                "details and board exam concepts."
            ),
        },
        {"role": "user", "content": content},
    ]


def study_plan_messages(
    *,
    start_date: int,
    end_date: int,
    goals: List[Dict[str, Any]],
    exams: List[Dict[str, Any]],
    progress: List[Dict[str, Any]],
    preferences: Dict[str, Any],
) -> List[Message]:
    formatted_goals = [
        {
            "title": g.get("title", ""),
            "topics": g.get("topics") or [],
            "priority": g.get("priority", "medium"),
            "target_date": ms_to_date_str(g.get("target_date")),
        }
        for g in goals
    ]
    formatted_exams = [
        {
            "title": e.get("title", ""),
            "topics": e.get("topics") or [],
            "importance": e.get("importance", "major"),
            "date": ms_to_date_str(e.get("date")),
        }
        for e in exams
    ]
    formatted_progress = [
        {
            "topic": p.get("topic", ""),
            "confidence": p.get("confidence", 0),
            "last_reviewed": ms_to_date_str(p.get("last_reviewed")),
        }
        for p in progress
    ]
    system = (
        f"{ASSISTANT_PREFIX} creating personalized study plans for medical students.\n"
        "Create a detailed study plan based on the student's goals, upcoming exams and progress data.\n"
        "Respect the student's preferences for session length, break frequency, preferred times and rest days.\n"
        "Follow spaced repetition principles, reviewing weaker topics more frequently.\n"
        "Output valid JSON only: an object with 'title' and 'daily_plans'. Each daily plan has 'day' (weekday name), "
        "'date' (epoch milliseconds) and 'sessions'; each session has 'start_time' and 'end_time' (HH:MM), "
        "'topic', 'activity' and an optional 'description'."
    )
    user = (
        f"Please create a personalized study plan from {ms_to_date_str(start_date)} to {ms_to_date_str(end_date)} "
        f"(epoch ms {int(start_date)} to {int(end_date)}).\n\n"
        f"My goals are: {_dumps(formatted_goals)}\n\n"
        f"My upcoming exams are: {_dumps(formatted_exams)}\n\n"
        f"My current progress in topics is: {_dumps(formatted_progress)}\n\n"
        f"My study preferences are: {_dumps(preferences)}\n\n"
        "Return JSON now."
    )
    return [{"role": "system", "content": system}, {"role": "user", "content": user}]


def wellness_messages(message: str, previous_checkins: List[Dict[str, Any]]) -> List[Message]:
    formatted_previous = [
        {
            "date": ms_to_date_str(c.get("created_at")),
            "mood": c.get("mood", ""),
            "stress_level": c.get("stress_level"),
        }
        for c in previous_checkins
    ]
    system = (
        f"{ASSISTANT_PREFIX} supporting medical students' mental health and wellbeing.\n"
        "Analyze the student's message, detect their mood and stress level, and provide an empathetic response "
        "with practical suggestions for managing stress, maintaining wellness and improving productivity.\n"
        "Output valid JSON only with keys 'mood', 'stress_level', 'analysis', 'response' and 'suggestions'.\n"
        f"The mood must be one of: {', '.join(WELLNESS_MOODS)}.\n"
        "stress_level is an integer from 1 (minimal) to 10 (extreme).\n"
        "suggestions is an array of short, actionable recommendations."
    )
    if formatted_previous:
        history = f"My previous check-ins were: {_dumps(formatted_previous)}"
    else:
        history = "This is my first check-in."
    user = (
        f'Here\'s my check-in message: "{message}"\n\n'
        f"{history}\n\n"
        "Please analyze my message, provide a supportive response, and offer helpful suggestions."
    )
    return [{"role": "system", "content": system}, {"role": "user", "content": user}]


def daily_digest_messages(
    *,
    today: int,
    progress: List[Dict[str, Any]],
    exams: List[Dict[str, Any]],
    goals: List[Dict[str, Any]],
    recent_activity: List[Dict[str, Any]],
    available_minutes: Optional[int] = None,
) -> List[Message]:
    formatted_progress = [
        {
            "topic": p.get("topic", ""),
            "confidence": p.get("confidence", 0),
            "last_reviewed": ms_to_date_str(p.get("last_reviewed")),
        }
        for p in progress
    ]
    formatted_exams = [
        {"title": e.get("title", ""), "topics": e.get("topics") or [], "date": ms_to_date_str(e.get("date"))}
        for e in exams
    ]
    formatted_goals = [
        {"title": g.get("title", ""), "topics": g.get("topics") or [], "target_date": ms_to_date_str(g.get("target_date"))}
        for g in goals
    ]
    formatted_activity = [
        {"type": a.get("type", ""), "topic": a.get("topic", ""), "date": ms_to_date_str(a.get("timestamp"))}
        for a in recent_activity
    ]
    system = (
        f"{ASSISTANT_PREFIX} creating personalized daily study recommendations.\n"
        "Use spaced repetition principles to prioritize topics, considering review recency, confidence levels "
        "and proximity to exams.\n"
        "Output valid JSON only with keys 'summary', 'review_topics' (objects with 'topic', 'reason' and "
        "'priority' of high/medium/low) and 'suggested_activities' (objects with 'activity', 'topic' and "
        "'duration' in minutes)."
    )
    time_line = f"I have {int(available_minutes)} minutes available to study today.\n\n" if available_minutes else ""
    user = (
        f"Please create my daily study digest for {ms_to_date_str(today)}.\n\n"
        f"My topic progress is: {_dumps(formatted_progress)}\n\n"
        f"My upcoming exams are: {_dumps(formatted_exams)}\n\n"
        f"My current goals are: {_dumps(formatted_goals)}\n\n"
        f"My recent study activity: {_dumps(formatted_activity)}\n\n"
        f"{time_line}"
        "What should I review today? Include a brief summary, the top topics to review with reasons, "
        "and specific suggested activities."
    )
    return [{"role": "system", "content": system}, {"role": "user", "content": user}]


def verify_facts_messages(text: str) -> List[Message]:
    system = (
        "You are a medical fact-checking assistant. Your task is to:\n"
        "1. Identify medical claims in the provided text\n"
        "2. Assess confidence in each claim (High, Medium, Low)\n"
        "3. Flag potential inaccuracies\n"
        "4. Format the response as a JSON object with a \"claims\" array"
    )
    user = f"Please fact-check this medical text and provide confidence scores for each claim:\n\n{text}"
    return [{"role": "system", "content": system}, {"role": "user", "content": user}]


def literature_answer_messages(question: str, context: str) -> List[Message]:
    return [
        {
            "role": "system",
            "content": (
                "You are Dorothy, a medical education AI assistant. Use the provided medical literature to answer "
                "the question. Cite specific articles using [1], [2], etc. Synthesize information from these "
                "sources and provide educational context."
            ),
        },
        {"role": "user", "content": f"Question: {question}\n\nContext: {context}"},
    ]


def cited_answer_messages(question: str, citations: List[Dict[str, Any]]) -> List[Message]:
    refs = "\n".join(f"[{c['index']}] {c['title']}" for c in citations)
    return [
        {
            "role": "system",
            "content": (
                "You are Dorothy, a medical education AI assistant that produces well-cited responses. "
                "When stating medical facts, include citation numbers [1], [2], etc. Facts that are common "
                "medical knowledge need no citation. Use clear paragraphs and cite every specific claim."
            ),
        },
        {
            "role": "user",
            "content": (
                f"Question: {question}\n\n"
                "Please provide a comprehensive answer with proper citations. Use these citations:\n"
                f"{refs}"
            ),
        },
    ]
