# src/validation/validator.py - v1
"""Rule-based quality validation of generated metadata.

Rule violations lower a field's score and are reported as warnings; only a
missing or empty ALT text is an error. Scores are floored at 0.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from mediaseo.core.models import FieldValidation, GeneratedFields, ValidationOutcome
from mediaseo.validation.rules import (
    AltRules,
    CaptionRules,
    KeywordRules,
    QualityRules,
    TitleRules,
)

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[^\W\d_]+(?:['-][^\W\d_]+)*", re.UNICODE)


def count_words(text: str) -> int:
    """Count alphabetic words (digits and punctuation are not words)."""
    return len(_WORD.findall(text))


def _floor(score: float) -> float:
    return round(min(max(score, 0.0), 1.0), 4)


class ResponseValidator:
    """Validate metadata fields against QualityRules."""

    def __init__(self, rules: QualityRules | None = None) -> None:
        self._rules = rules or QualityRules()

    @property
    def rules(self) -> QualityRules:
        return self._rules

    def validate(self, fields: GeneratedFields | dict[str, Any]) -> ValidationOutcome:
        """Validate each present field; ALT is mandatory.

        Overall score is the mean of the scores of the fields that were checked.
        """
        if isinstance(fields, dict):
            fields = GeneratedFields(**{k: v for k, v in fields.items() if k in GeneratedFields.model_fields})

        results: dict[str, FieldValidation] = {
            "alt": self.validate_alt(fields.alt, self._rules.alt),
        }
        if fields.caption:
            results["caption"] = self.validate_caption(fields.caption, self._rules.caption)
        if fields.title:
            results["title"] = self.validate_title(fields.title, self._rules.title)
        if fields.keywords:
            results["keywords"] = self.validate_keywords(fields.keywords, self._rules.keywords)

        score = sum(r.score for r in results.values()) / len(results)
        outcome = ValidationOutcome(
            valid=all(r.valid for r in results.values()),
            score=_floor(score),
            fields=results,
        )
        if outcome.warnings:
            logger.debug("Quality warnings: %s", "; ".join(outcome.warnings))
        return outcome

    @staticmethod
    def validate_alt(alt: str | None, rules: AltRules) -> FieldValidation:
        if not alt or not alt.strip():
            return FieldValidation(valid=False, errors=["ALT text is required."], score=0.0)

        result = FieldValidation()
        score = 1.0
        length = len(alt)

        if length < rules.min_length:
            result.warnings.append(
                f"ALT text is too short ({length} chars, minimum {rules.min_length})."
            )
            score -= rules.penalty_too_short
        if length > rules.max_length:
            result.warnings.append(
                f"ALT text is too long ({length} chars, maximum {rules.max_length})."
            )
            score -= rules.penalty_too_long

        lowered = alt.lower()
        for phrase in rules.forbidden_phrases:
            if phrase.lower() in lowered:
                result.warnings.append(f"ALT text contains forbidden phrase: '{phrase}'.")
                score -= rules.penalty_forbidden

        words = count_words(alt)
        if words < rules.min_words:
            result.warnings.append(
                f"ALT text is not descriptive enough ({words} words, minimum {rules.min_words})."
            )
            score -= rules.penalty_few_words

        result.score = _floor(score)
        return result

    @staticmethod
    def validate_caption(caption: str, rules: CaptionRules) -> FieldValidation:
        result = FieldValidation()
        score = 1.0
        length = len(caption)
        words = count_words(caption)

        if length < rules.min_length:
            result.warnings.append(f"Caption is too short ({length} chars).")
            score -= rules.penalty_too_short
        if length > rules.max_length:
            result.warnings.append(f"Caption is too long ({length} chars).")
            score -= rules.penalty_too_long
        if words < rules.min_words:
            result.warnings.append(f"Caption has too few words ({words}).")
            score -= rules.penalty_few_words
        if words > rules.max_words:
            result.warnings.append(f"Caption has too many words ({words}).")
            score -= rules.penalty_many_words

        result.score = _floor(score)
        return result

    @staticmethod
    def validate_title(title: str, rules: TitleRules) -> FieldValidation:
        result = FieldValidation()
        score = 1.0
        words = count_words(title)

        if words < rules.min_words:
            result.warnings.append(f"Title has too few words ({words}, minimum {rules.min_words}).")
            score -= rules.penalty_few_words
        if words > rules.max_words:
            result.warnings.append(f"Title has too many words ({words}, maximum {rules.max_words}).")
            score -= rules.penalty_many_words
        if len(title) > rules.max_length:
            result.warnings.append(f"Title is too long ({len(title)} chars).")
            score -= rules.penalty_too_long

        result.score = _floor(score)
        return result

    @staticmethod
    def validate_keywords(keywords: list[str], rules: KeywordRules) -> FieldValidation:
        result = FieldValidation()
        score = 1.0
        count = len(keywords)

        if count < rules.min_count:
            result.warnings.append(f"Too few keywords ({count}, minimum {rules.min_count}).")
            score -= rules.penalty_too_few
        if count > rules.max_count:
            result.warnings.append(f"Too many keywords ({count}, maximum {rules.max_count}).")
            score -= rules.penalty_too_many

        normalized = [k.strip().lower() for k in keywords]
        if len(set(normalized)) != len(normalized):
            result.warnings.append("Keywords contain duplicates.")
            score -= rules.penalty_duplicates

        result.score = _floor(score)
        return result
