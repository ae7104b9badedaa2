"""Comment command tokenizer.

Comments are scanned for each phrase of the fixed vocabulary, in vocabulary
order. Two containment policies exist:

- SUBSTRING (default): a phrase matches wherever it occurs in the text,
  including inside a longer word. A comment that mentions several phrases
  fires all of them, and "digger planet" fires "digger plan".
- TOKEN: a phrase matches only when bounded by whitespace or the ends of
  the text. Opt-in via COMMENT_CONTAINMENT=TOKEN.
"""

import re

from src.config.settings import ContainmentPolicy
from src.models.common import SUPPORTED_COMMANDS, DiggerCommand


class CommentCommandParser:
    """Find supported command phrases in free-text comments."""

    def __init__(
        self,
        policy: ContainmentPolicy = ContainmentPolicy.SUBSTRING,
        vocabulary: tuple[DiggerCommand, ...] = SUPPORTED_COMMANDS,
    ) -> None:
        self.policy = policy
        self.vocabulary = vocabulary
        self._patterns = {
            phrase: re.compile(rf"(?<!\S){re.escape(phrase.value)}(?!\S)")
            for phrase in vocabulary
        }

    def contains(self, text: str, phrase: DiggerCommand) -> bool:
        if self.policy == ContainmentPolicy.TOKEN:
            return self._patterns[phrase].search(text) is not None
        return phrase.value in text

    def parse(self, text: str) -> list[DiggerCommand]:
        """Return matched phrases in vocabulary order."""
        if not text:
            return []
        return [phrase for phrase in self.vocabulary if self.contains(text, phrase)]
