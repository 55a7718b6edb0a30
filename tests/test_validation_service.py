"""Tests for the EntityValidator name and role checks.

Tests cover:
- Person-name validity boundaries
- Blocklists (placeholders, political figures, titles, company tokens)
- Political role detection
- Recovering a name from a prefixed span
"""

from dataclasses import replace

from app.core.config import EntityRules
from app.services.validation_service import EntityValidator, get_entity_validator


class TestValidateName:
    """Test person-name validation."""

    def setup_method(self):
        """Set up test fixtures."""
        self.validator = EntityValidator()

    def test_two_capitalized_parts_is_valid(self):
        """Test that a plain first/last name passes."""
        assert self.validator.is_valid_name("Elon Musk") is True

    def test_three_part_name_is_valid(self):
        """Test that a name with a middle name passes."""
        is_valid, reason = self.validator.validate_name("Mary Jane Watson")
        assert is_valid is True
        assert reason == "Valid name format"

    def test_job_title_is_rejected(self):
        """Test that 'Vice President' is not a person."""
        is_valid, reason = self.validator.validate_name("Vice President")
        assert is_valid is False
        assert "non-name phrase" in reason

    def test_placeholder_name_is_rejected(self):
        """Test that LLM placeholder names are rejected."""
        is_valid, reason = self.validator.validate_name("John Doe")
        assert is_valid is False
        assert "placeholder" in reason

    def test_single_letter_first_part_is_rejected(self):
        """Test that 'A Smith' fails on the short first part."""
        is_valid, reason = self.validator.validate_name("A Smith")
        assert is_valid is False
        assert "too short" in reason

    def test_single_word_is_rejected(self):
        """Test that one word is not a full name."""
        is_valid, reason = self.validator.validate_name("Carter")
        assert is_valid is False
        assert "first and last" in reason

    def test_empty_and_none_are_rejected(self):
        """Test that empty input is rejected."""
        assert self.validator.validate_name("")[0] is False
        assert self.validator.validate_name(None)[0] is False

    def test_political_figure_is_rejected(self):
        """Test that well-known politicians are rejected."""
        is_valid, reason = self.validator.validate_name("Joe Biden")
        assert is_valid is False
        assert "political figure" in reason

    def test_company_name_is_rejected(self):
        """Test that organization tokens are rejected."""
        is_valid, reason = self.validator.validate_name("Acme Corp")
        assert is_valid is False
        assert "company indicator" in reason

    def test_lowercase_part_is_rejected(self):
        """Test that every part must be capitalized."""
        is_valid, reason = self.validator.validate_name("Jane carter")
        assert is_valid is False
        assert "not capitalized" in reason

    def test_title_word_in_name_is_rejected(self):
        """Test that headline verbs glued to a name are rejected."""
        is_valid, reason = self.validator.validate_name("Appoints Jane Carter")
        assert is_valid is False
        assert "title or action word" in reason

    def test_boilerplate_phrase_is_rejected(self):
        """Test that web boilerplate never passes as a name."""
        assert self.validator.is_valid_name("Read More") is False
        assert self.validator.is_valid_name("Wall Street") is False

    def test_name_too_long_is_rejected(self):
        """Test the configured maximum length."""
        is_valid, reason = self.validator.validate_name("Bartholomew Maximilian Fitzgerald Worthington")
        assert is_valid is False
        assert "too long" in reason

    def test_custom_rules_are_honored(self):
        """Test that injected rules replace the defaults."""
        rules = replace(EntityRules(), fake_names=("elon musk",))
        validator = EntityValidator(rules)
        assert validator.is_valid_name("Elon Musk") is False
        assert validator.is_valid_name("John Doe") is True


class TestPoliticalRole:
    """Test political office detection."""

    def setup_method(self):
        """Set up test fixtures."""
        self.validator = EntityValidator()

    def test_bare_president_is_political(self):
        """Test that an unqualified 'President' reads as political office."""
        assert self.validator.is_political_role("President") is True
        assert self.validator.is_political_role("the President") is True

    def test_qualified_president_is_corporate(self):
        """Test that company-qualified presidencies are kept."""
        assert self.validator.is_political_role("President of Acme") is False
        assert self.validator.is_political_role("Co-President") is False

    def test_government_offices_are_political(self):
        """Test common government titles."""
        assert self.validator.is_political_role("Senator") is True
        assert self.validator.is_political_role("Treasury Secretary") is True
        assert self.validator.is_political_role("U.S. Representative for Ohio") is True

    def test_executive_titles_are_not_political(self):
        """Test that executive titles are not flagged."""
        assert self.validator.is_political_role("Chief Executive Officer") is False
        assert self.validator.is_political_role("Sales Representative") is False
        assert self.validator.is_political_role("") is False


class TestExtractNameFromSpan:
    """Test recovering a name from a longer capture."""

    def setup_method(self):
        """Set up test fixtures."""
        self.validator = EntityValidator()

    def test_clean_span_is_returned_as_is(self):
        """Test a span that is already a name."""
        assert self.validator.extract_name_from_span("Jane Carter") == "Jane Carter"

    def test_company_prefix_is_dropped(self):
        """Test that a leading company name is stripped."""
        assert self.validator.extract_name_from_span("Acme Corp Jane Carter") == "Jane Carter"

    def test_title_span_has_no_name(self):
        """Test that a pure title yields nothing."""
        assert self.validator.extract_name_from_span("Vice President") is None

    def test_whitespace_is_collapsed(self):
        """Test that internal whitespace is normalized."""
        assert self.validator.extract_name_from_span("  Jane   Carter ") == "Jane Carter"


class TestSingleton:
    """Test the module-level accessor."""

    def test_returns_same_instance(self):
        """Test that the getter caches its instance."""
        assert get_entity_validator() is get_entity_validator()
