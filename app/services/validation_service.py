"""
Entity name validation service.

Tells a real person's name apart from job titles, company names, political
figures and boilerplate phrases that regex extraction tends to capture.
Heuristics only, no external lookups.
"""

import logging
import re

from app.core.config import EntityRules, get_pipeline_config

logger = logging.getLogger(__name__)

# Bare forms that read as political office
BARE_PRESIDENT_PATTERN = re.compile(r"^(the\s+)?president$", re.IGNORECASE)


def _contains_phrase(words: list[str], phrase: str) -> bool:
    """Check whether ``phrase`` occurs in ``words`` as a contiguous word sequence."""
    phrase_words = phrase.split()
    span = len(phrase_words)
    if span == 0 or span > len(words):
        return False
    return any(words[i:i + span] == phrase_words for i in range(len(words) - span + 1))


class EntityValidator:
    """Validates person names and roles against configured vocabularies."""

    def __init__(self, rules: EntityRules | None = None) -> None:
        self.rules = rules or get_pipeline_config().entities
        self._fake_names = {n.lower() for n in self.rules.fake_names}
        self._political_figures = {n.lower() for n in self.rules.political_figures}
        self._company_indicators = {t.lower() for t in self.rules.company_indicators}
        self._title_words = {t.lower() for t in self.rules.title_words}
        self._non_name_phrases = [p.lower() for p in self.rules.non_name_phrases]
        self._political_role_patterns = [
            re.compile(rf"(?<![a-z]){re.escape(role.lower())}(?![a-z])")
            for role in self.rules.political_roles
        ]

    def validate_name(self, name: str) -> tuple[bool, str]:
        """
        Validate if a string is a real person's name.

        Returns:
            tuple[bool, str]: (is_valid, reason)
        """
        if not name or not isinstance(name, str):
            return False, "Name is empty or not a string"

        name = re.sub(r"\s+", " ", name.strip())
        name_lower = name.lower()
        words = name_lower.split()

        if name_lower in self._fake_names:
            return False, f"Name is a placeholder name: {name}"

        if name_lower in self._political_figures:
            return False, f"Name is a political figure: {name}"

        for phrase in self._non_name_phrases:
            if name_lower == phrase or _contains_phrase(words, phrase):
                return False, f"Name contains non-name phrase: {phrase}"

        for word in words:
            if word.strip(".,") in self._company_indicators:
                return False, f"Name contains company indicator: {word}"

        if len(words) < 2:
            return False, "Name should have at least first and last name"

        for part in name.split():
            if len(part) < 2:
                return False, f"Name part too short: {part}"
            if not part[0].isupper():
                return False, f"Name part not capitalized: {part}"
            if part.lower() in self._title_words:
                return False, f"Name part is a title or action word: {part}"

        if len(name) < self.rules.min_name_length:
            return False, "Name too short"

        if len(name) > self.rules.max_name_length:
            return False, f"Name too long (max {self.rules.max_name_length} characters)"

        return True, "Valid name format"

    def is_valid_name(self, name: str) -> bool:
        is_valid, reason = self.validate_name(name)
        if not is_valid:
            logger.debug(f"Rejected name {name!r}: {reason}")
        return is_valid

    def is_political_role(self, role: str) -> bool:
        """
        Check whether a role reads as a government or political office.

        Bare "President" / "The President" count as political; qualified
        forms such as "Co-President" or "President of Acme" do not.
        """
        if not role:
            return False
        role_clean = re.sub(r"\s+", " ", role.strip())
        if BARE_PRESIDENT_PATTERN.match(role_clean):
            return True
        role_lower = role_clean.lower()
        return any(pattern.search(role_lower) for pattern in self._political_role_patterns)

    def extract_name_from_span(self, text: str) -> str | None:
        """
        Recover a valid name from a captured span that may carry a prefix.

        Tries the whole span, then its trailing three- and two-word suffixes.

        Examples:
            "Jane Carter" -> "Jane Carter"
            "Acme Corp Jane Carter" -> "Jane Carter"
            "Vice President" -> None
        """
        if not text:
            return None

        text = re.sub(r"\s+", " ", text.strip())
        if self.is_valid_name(text):
            return text

        words = text.split()
        for size in (3, 2):
            if len(words) > size:
                candidate = " ".join(words[-size:])
                if self.is_valid_name(candidate):
                    return candidate

        return None


# Singleton
_entity_validator: EntityValidator | None = None


def get_entity_validator() -> EntityValidator:
    """Get the singleton EntityValidator instance."""
    global _entity_validator
    if _entity_validator is None:
        _entity_validator = EntityValidator()
    return _entity_validator
