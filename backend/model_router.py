from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Literal, Optional, Tuple

ComplexityLevel = Literal["simple", "medium", "complex", "expert"]
MedicalDomain = Literal[
    "general",
    "pathology",
    "pharmacology",
    "anatomy",
    "physiology",
    "diagnosis",
    "treatment",
    "emergency",
    "pediatrics",
    "geriatrics",
]
Task = Literal["qa", "summarization", "flashcards", "diagnosis", "study_plan", "wellness", "daily_digest"]

COMPLEXITY_LEVELS: Tuple[str, ...] = ("simple", "medium", "complex", "expert")
MEDICAL_DOMAINS: Tuple[str, ...] = (
    "general",
    "pathology",
    "pharmacology",
    "anatomy",
    "physiology",
    "diagnosis",
    "treatment",
    "emergency",
    "pediatrics",
    "geriatrics",
)
TASKS: Tuple[str, ...] = ("qa", "summarization", "flashcards", "diagnosis", "study_plan", "wellness", "daily_digest")

MEDIUM_LENGTH_THRESHOLD = 200


@dataclass(frozen=True)
class ModelConfig:
    model: str
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None

    def request_kwargs(self) -> Dict[str, object]:
        """Chat-completion keyword arguments; unset sampling fields are omitted."""

        kwargs: Dict[str, object] = {"model": self.model}
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens
        if self.top_p is not None:
            kwargs["top_p"] = self.top_p
        return kwargs

    def to_dict(self) -> Dict[str, object]:
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
        }


# -----------------------------
# Keyword tables
# -----------------------------
EXPERT_PHRASES: Tuple[str, ...] = (
    "rare disease",
    "complex case",
    "challenging presentation",
    "controversial treatment",
    "latest research",
    "evidence-based approach",
)

COMPLEX_PHRASES: Tuple[str, ...] = (
    "differential diagnosis",
    "mechanism of action",
    "pathophysiology",
    "explain in detail",
    "compare and contrast",
    "underlying mechanism",
)

# Declaration order doubles as the tie-break order.
DOMAIN_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "pathology": (
        "pathology", "histology", "biopsy", "microscopic", "staining", "tumor", "cancer", "lesion", "morphology",
    ),
    "pharmacology": (
        "drug", "medication", "dose", "pharmacology", "mechanism of action", "side effect", "adverse effect",
        "therapeutic", "contraindication",
    ),
    "anatomy": (
        "anatomy", "structure", "location", "nerve", "artery", "vein", "muscle", "bone", "organ", "spatial",
    ),
    "physiology": (
        "physiology", "function", "regulation", "mechanism", "pathway", "homeostasis", "system", "metabolism",
    ),
    "diagnosis": (
        "diagnosis", "differential", "symptom", "sign", "presentation", "diagnostic criteria", "test", "workup",
        "evaluation",
    ),
    "treatment": (
        "treatment", "management", "therapy", "approach", "guideline", "protocol", "intervention", "care plan",
    ),
    "emergency": (
        "emergency", "acute", "critical", "life-threatening", "trauma", "resuscitation", "immediate", "urgent",
    ),
    "pediatrics": (
        "pediatric", "child", "infant", "newborn", "adolescent", "developmental", "growth", "congenital",
    ),
    "geriatrics": (
        "geriatric", "elderly", "older adult", "aging", "frailty", "nursing home", "dementia", "fall",
    ),
    "general": (),
}

_BASE_CONFIGS: Dict[str, ModelConfig] = {
    "simple": ModelConfig(model="gpt-4o-mini", temperature=0.7),
    "medium": ModelConfig(model="gpt-4.1-nano", temperature=0.7),
    "complex": ModelConfig(model="gpt-4o", temperature=0.5, max_tokens=2000),
    "expert": ModelConfig(model="gpt-4-turbo", temperature=0.3, max_tokens=4000, top_p=0.95),
}

# task -> complexity -> base tier. Tasks absent here fall back to "medium".
TASK_OVERRIDES: Dict[str, Dict[str, str]] = {
    "qa": {"simple": "medium", "medium": "expert", "complex": "complex", "expert": "expert"},
    "summarization": {"simple": "medium", "medium": "complex", "complex": "complex", "expert": "complex"},
    "flashcards": {"simple": "simple", "medium": "simple", "complex": "simple", "expert": "simple"},
    "diagnosis": {"simple": "expert", "medium": "expert", "complex": "expert", "expert": "expert"},
    "study_plan": {"simple": "complex", "medium": "complex", "complex": "complex", "expert": "complex"},
    "wellness": {"simple": "medium", "medium": "medium", "complex": "medium", "expert": "medium"},
    "daily_digest": {"simple": "simple", "medium": "medium", "complex": "medium", "expert": "medium"},
}


def _contains_any(haystack: str, phrases: Tuple[str, ...]) -> bool:
    return any(phrase in haystack for phrase in phrases)


def classify_complexity(text: str) -> ComplexityLevel:
    """
    Expert phrases win over complex phrases; without a phrase hit, only the
    raw length decides between medium and simple.
    """
    raw = text or ""
    lowered = raw.lower()
    if _contains_any(lowered, EXPERT_PHRASES):
        return "expert"
    if _contains_any(lowered, COMPLEX_PHRASES):
        return "complex"
    if len(raw) > MEDIUM_LENGTH_THRESHOLD:
        return "medium"
    return "simple"


def domain_scores(text: str) -> List[Tuple[str, int]]:
    lowered = (text or "").lower()
    return [
        (domain, sum(1 for keyword in keywords if keyword in lowered))
        for domain, keywords in DOMAIN_KEYWORDS.items()
    ]


def classify_domain(text: str) -> MedicalDomain:
    best_domain = "general"
    best_score = 0
    for domain, score in domain_scores(text):
        # strict > keeps the first domain that reached the max
        if score > best_score:
            best_domain, best_score = domain, score
    if best_score == 0:
        return "general"
    return best_domain  # type: ignore[return-value]


def base_config(complexity: str) -> ModelConfig:
    return replace(_BASE_CONFIGS.get(complexity, _BASE_CONFIGS["medium"]))


def config_for(task: str, complexity: str) -> ModelConfig:
    overrides = TASK_OVERRIDES.get(task)
    if overrides is None:
        return base_config("medium")
    return base_config(overrides.get(complexity, "medium"))


def select_config(task: str, input_text: str) -> ModelConfig:
    return config_for(task, classify_complexity(input_text))


__all__ = [
    "COMPLEXITY_LEVELS",
    "DOMAIN_KEYWORDS",
    "MEDICAL_DOMAINS",
    "ModelConfig",
    "TASKS",
    "base_config",
    "classify_complexity",
    "classify_domain",
    "config_for",
    "domain_scores",
    "select_config",
]
