import logging
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from rules import RuleSnapshot, RuleStoreUnavailable

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"


def categorize(description: Optional[str], rules: RuleSnapshot) -> str:
    """
    Category of the first rule whose keyword occurs in ``description``.

    Rules are consulted in snapshot order, so a higher-priority match always
    wins, even over a longer keyword at a lower priority.
    """
    if description is None:
        return UNCATEGORIZED
    if not isinstance(description, str):
        raise TypeError("description must be a string")
    normalized = description.strip().lower()
    if not normalized:
        return UNCATEGORIZED
    for rule in rules:
        if rule.keyword in normalized:
            return rule.category
    return UNCATEGORIZED


class Categorizer:
    def __init__(self, rule_source: Callable[[], RuleSnapshot]) -> None:
        self.rule_source = rule_source

    def _snapshot(self) -> Optional[RuleSnapshot]:
        try:
            return self.rule_source()
        except (RuleStoreUnavailable, SQLAlchemyError) as exc:
            logger.warning(f"categorize: rule store unavailable error={exc!r}")
            return None

    def categorize(self, description: Optional[str]) -> str:
        snapshot = self._snapshot()
        if snapshot is None:
            return UNCATEGORIZED
        return categorize(description, snapshot)

    def categorize_many(self, descriptions: Iterable[Optional[str]]) -> list[str]:
        """Categorize a batch against a single snapshot of the rule store."""
        descriptions = list(descriptions)
        snapshot = self._snapshot()
        if snapshot is None:
            return [UNCATEGORIZED] * len(descriptions)
        return [categorize(description, snapshot) for description in descriptions]
