from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from guardrails import apply_review_note, filter_flashcards, needs_fact_check, total_study_hours
from literature import PubMedClient
from llm import GenerationError, LLMClient
from llm_models import DailyDigestDraft, StudyPlanDraft, WellnessAnalysis
from model_router import ModelConfig, classify_complexity, classify_domain, config_for
from parsing import Malformed, extract_json
from policy import digest_complexity, summary_complexity, wellness_complexity
from prompting import (
    cited_answer_messages,
    daily_digest_messages,
    fact_review_messages,
    flashcard_messages,
    image_analysis_messages,
    image_question_messages,
    literature_answer_messages,
    qa_messages,
    study_plan_messages,
    summary_messages,
    verify_facts_messages,
    wellness_messages,
)

logger = logging.getLogger(__name__)

VISION_MODEL = "gpt-4o"
REVIEW_MODEL = "gpt-4o"
STRUCTURED_TEMPERATURE = 0.7


def _pinned_config(model: str) -> ModelConfig:
    # provider default sampling
    return ModelConfig(model=model)


class StudyAssistant:
    """
    All LLM-backed study actions. The chat client and the literature client are
    injected so a process builds them once and tests can substitute fakes.
    """

    def __init__(self, llm: LLMClient, literature: Optional[PubMedClient] = None) -> None:
        self.llm = llm
        self.literature = literature or PubMedClient()

    def _structured(
        self,
        action: str,
        messages: List[Dict[str, Any]],
        config: ModelConfig,
        schema: Type[BaseModel],
    ) -> BaseModel:
        result = self.llm.chat(messages, config)
        outcome = extract_json(result.text, "object")
        if isinstance(outcome, Malformed):
            logger.warning("%s: malformed model output (%s): %r", action, outcome.reason, outcome.raw_text[:500])
            raise GenerationError(f"Failed to parse the generated {action}: {outcome.reason}", raw_text=result.text)
        try:
            return schema.model_validate(outcome.value)
        except ValidationError as exc:
            logger.warning("%s: model output failed validation: %s", action, exc)
            raise GenerationError(f"Generated {action} is not in the expected format", raw_text=result.text) from exc

    def ask_question(self, question: str) -> Dict[str, Any]:
        complexity = classify_complexity(question)
        domain = classify_domain(question)
        config = config_for("qa", complexity)
        logger.info("Question complexity=%s domain=%s model=%s", complexity, domain, config.model)

        literature: Optional[Dict[str, Any]] = None
        if complexity in ("complex", "expert"):
            literature = self.literature.medical_literature(question)
            messages = qa_messages(question, domain, literature["context"])
        else:
            messages = qa_messages(question, domain)

        answer = self.llm.chat(messages, config).text

        if needs_fact_check(domain, complexity):
            review_config = _pinned_config(REVIEW_MODEL)
            review = self.llm.chat(fact_review_messages(answer), review_config).text
            answer = apply_review_note(answer, review)

        return {
            "answer": answer,
            "citations": (literature or {}).get("citations", []),
            "complexity": complexity,
            "domain": domain,
            "model": config.model,
        }

    def ask_question_with_image(self, question: str, image_url: str) -> str:
        domain = classify_domain(question)
        logger.info("Image question complexity=%s domain=%s", classify_complexity(question), domain)
        return self.llm.chat(image_question_messages(question, image_url, domain), _pinned_config(VISION_MODEL)).text

    def analyze_medical_image(self, image_url: str, prompt: Optional[str] = None) -> str:
        return self.llm.chat(image_analysis_messages(image_url, prompt), _pinned_config(VISION_MODEL)).text

    def generate_flashcards(self, topic: str, content: Optional[str] = None) -> List[Dict[str, str]]:
        config = config_for("flashcards", classify_complexity(content or topic))
        result = self.llm.chat(flashcard_messages(topic, content), config)
        outcome = extract_json(result.text, "array")
        if isinstance(outcome, Malformed):
            logger.warning("flashcards: malformed model output (%s): %r", outcome.reason, outcome.raw_text[:500])
            return []
        return filter_flashcards(outcome.value)

    def summarize_notes(self, content: str) -> str:
        complexity = summary_complexity(content)
        config = config_for("summarization", complexity)
        logger.info("Summarizing %d chars complexity=%s model=%s", len(content or ""), complexity, config.model)
        return self.llm.chat(summary_messages(content), config).text

    def generate_study_plan(
        self,
        *,
        start_date: int,
        end_date: int,
        goals: List[Dict[str, Any]],
        exams: List[Dict[str, Any]],
        progress: List[Dict[str, Any]],
        preferences: Dict[str, Any],
    ) -> Dict[str, Any]:
        config = replace(config_for("study_plan", "complex"), temperature=STRUCTURED_TEMPERATURE)
        messages = study_plan_messages(
            start_date=start_date,
            end_date=end_date,
            goals=goals,
            exams=exams,
            progress=progress,
            preferences=preferences,
        )
        plan = self._structured("study plan", messages, config, StudyPlanDraft).model_dump()
        logger.info(
            "Generated study plan title=%r days=%d total_hours=%s",
            plan["title"],
            len(plan["daily_plans"]),
            total_study_hours(plan["daily_plans"]),
        )
        return plan

    def process_wellness_checkin(
        self,
        message: str,
        previous_checkins: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        config = replace(config_for("wellness", wellness_complexity(message)), temperature=STRUCTURED_TEMPERATURE)
        messages = wellness_messages(message, previous_checkins or [])
        analysis = self._structured("wellness response", messages, config, WellnessAnalysis).model_dump()
        logger.info(
            "Wellness check-in mood=%s stress=%s suggestions=%d",
            analysis["mood"],
            analysis["stress_level"],
            len(analysis["suggestions"]),
        )
        return analysis

    def generate_daily_digest(
        self,
        *,
        today: int,
        progress: List[Dict[str, Any]],
        exams: List[Dict[str, Any]],
        goals: List[Dict[str, Any]],
        recent_activity: List[Dict[str, Any]],
        available_minutes: Optional[int] = None,
    ) -> Dict[str, Any]:
        complexity = digest_complexity(len(progress), len(exams), len(goals))
        config = replace(config_for("daily_digest", complexity), temperature=STRUCTURED_TEMPERATURE)
        messages = daily_digest_messages(
            today=today,
            progress=progress,
            exams=exams,
            goals=goals,
            recent_activity=recent_activity,
            available_minutes=available_minutes,
        )
        return self._structured("daily digest", messages, config, DailyDigestDraft).model_dump()

    def verify_medical_facts(self, text: str) -> Dict[str, Any]:
        config = _pinned_config(REVIEW_MODEL)
        result = self.llm.chat(verify_facts_messages(text), config)
        outcome = extract_json(result.text, "object")
        if isinstance(outcome, Malformed):
            logger.warning("fact check: malformed model output (%s)", outcome.reason)
            return {"raw": outcome.raw_text, "error": "Failed to parse structured response"}
        return outcome.value

    def answer_with_literature(self, question: str) -> Dict[str, Any]:
        literature = self.literature.medical_literature(question)
        config = _pinned_config(REVIEW_MODEL)
        answer = self.llm.chat(literature_answer_messages(question, literature["context"]), config).text
        return {"answer": answer, "citations": literature["citations"]}

    def generate_with_citations(self, question: str) -> Dict[str, Any]:
        literature = self.literature.medical_literature(question)
        config = _pinned_config(REVIEW_MODEL)
        answer = self.llm.chat(cited_answer_messages(question, literature["citations"]), config).text
        return {"answer": answer, "citations": literature["citations"]}
