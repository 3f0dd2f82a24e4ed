# tests/unit/validation/test_unit_validator.py - v1
"""Tests for validation/validator.py and validation/rules.py."""

from __future__ import annotations

import pytest

from mediaseo.core.models import GeneratedFields
from mediaseo.validation.rules import AltRules, KeywordRules, QualityRules, TitleRules
from mediaseo.validation.validator import ResponseValidator, count_words
from tests.conftest import GOOD_FIELDS


class TestCountWords:
    def test_counts(self):
        assert count_words("Golden sunset over the bay") == 5
        assert count_words("IMG 2024 07") == 1
        assert count_words("well-lit café, Prague's old town") == 5


class TestValidateAlt:
    def test_missing_is_error(self):
        result = ResponseValidator.validate_alt("  ", AltRules())
        assert not result.valid
        assert result.errors == ["ALT text is required."]
        assert result.score == 0.0

    def test_good(self):
        result = ResponseValidator.validate_alt(GOOD_FIELDS["alt"], AltRules())
        assert result.valid
        assert result.score == 1.0
        assert result.warnings == []

    def test_forbidden_phrase(self):
        result = ResponseValidator.validate_alt("Image of a dog running on grass", AltRules())
        assert result.valid
        assert result.score == 0.8
        assert "forbidden phrase: 'image of'" in result.warnings[0]

    def test_short_and_few_words(self):
        result = ResponseValidator.validate_alt("Dog", AltRules())
        assert result.score == pytest.approx(0.5)
        assert len(result.warnings) == 2

    def test_too_long(self):
        result = ResponseValidator.validate_alt("word " * 40, AltRules(max_length=100))
        assert result.score == 0.5

    def test_score_floored(self):
        rules = AltRules(penalty_too_short=0.8, penalty_few_words=0.8)
        assert ResponseValidator.validate_alt("Dog", rules).score == 0.0


class TestValidateOtherFields:
    def test_title_too_many_words(self):
        result = ResponseValidator.validate_title(
            "A Very Long Title With Far Too Many Words", TitleRules()
        )
        assert result.score == 0.8

    def test_keywords_duplicates_and_few(self):
        result = ResponseValidator.validate_keywords(["Beach", "beach "], KeywordRules())
        assert result.score == pytest.approx(0.6)
        assert "Keywords contain duplicates." in result.warnings


class TestResponseValidator:
    def test_good_fields(self):
        outcome = ResponseValidator().validate(GeneratedFields(**GOOD_FIELDS))
        assert outcome.valid
        assert outcome.score == 1.0
        assert set(outcome.fields) == {"alt", "caption", "title", "keywords"}

    def test_only_present_fields_checked(self):
        outcome = ResponseValidator().validate({"alt": "Image of a dog running on grass", "score": 0.9})
        assert set(outcome.fields) == {"alt"}
        assert outcome.score == 0.8

    def test_missing_alt_invalid(self):
        outcome = ResponseValidator().validate({"title": "Golden Sunset Over Beach"})
        assert not outcome.valid
        assert outcome.errors == ["ALT text is required."]
        assert outcome.score == 0.5


class TestQualityRules:
    def test_overrides(self):
        rules = QualityRules.from_overrides({"alt": {"max_length": 80}, "min_acceptable_score": 0.5})
        assert rules.alt.max_length == 80
        assert rules.alt.min_words == 3
        assert rules.min_acceptable_score == 0.5

    def test_alt_max_length_from_settings(self):
        assert QualityRules.from_overrides(None, alt_max_length=100).alt.max_length == 100
        explicit = QualityRules.from_overrides({"alt": {"max_length": 90}}, alt_max_length=100)
        assert explicit.alt.max_length == 90
