"""Maps artifact identifiers to compatibility strategies.

Rules come from configuration as ``ResolverDefinition`` entries. Includes
without ``*`` are exact identifiers (``group`` or ``group:artifact``);
includes with ``*`` are patterns, split on ``:`` into a group pattern and
an optional artifact pattern.
"""
from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Pattern

from constants import Constants
from versioning.models import ResolverDefinition
from versioning.strategies import Strategy

logger = logging.getLogger(__name__)


def _compile_glob(text: str) -> Pattern[str]:
    return re.compile(re.escape(text).replace(r"\*", ".*"))


@dataclass(frozen=True)
class PatternRule:
    include: str
    group: Pattern[str]
    artifact: Optional[Pattern[str]]
    strategy: Strategy

    @classmethod
    def create(cls, include: str, strategy: Strategy) -> "PatternRule":
        group_text, _, artifact_text = include.partition(":")
        artifact = _compile_glob(artifact_text) if artifact_text else None
        return cls(include, _compile_glob(group_text), artifact, strategy)

    def matches(self, group_id: str, artifact_id: str) -> bool:
        if not self.group.fullmatch(group_id):
            return False
        return self.artifact is None or bool(self.artifact.fullmatch(artifact_id))


class StrategyRegistry:
    """Looks up the strategy for a qualified artifact identifier.

    Lookups go exact identifier, then exact group, then patterns in
    registration order, then the default. Everything past the first step is
    memoized per identifier.

    Raises:
        ConfigurationError: at construction, for unknown strategy names.
    """

    def __init__(self, default_strategy: str = Constants.DEFAULT_STRATEGY,
                 resolvers: Optional[Iterable[ResolverDefinition]] = None):
        self.default = Strategy.for_name(default_strategy)
        self._exact: Dict[str, Strategy] = {}
        self._patterns: List[PatternRule] = []
        self._memo: Dict[str, Strategy] = {}
        self._lock = threading.Lock()

        for resolver in resolvers or ():
            strategy = Strategy.for_name(resolver.strategy_name)
            for include in resolver.includes:
                include = include.strip()
                if not include:
                    continue
                self._register(include, strategy)

    def _register(self, include: str, strategy: Strategy) -> None:
        if "*" in include:
            for rule in self._patterns:
                if rule.include == include:
                    logger.warning("A strategy for '%s' was already defined: %s",
                                   include, rule.strategy.strategy_name)
            self._patterns.append(PatternRule.create(include, strategy))
        else:
            existing = self._exact.get(include)
            if existing is not None:
                logger.warning("A strategy for '%s' was already defined: %s",
                               include, existing.strategy_name)
            self._exact[include] = strategy
        logger.debug("Registered strategy %s for %s", strategy.strategy_name, include)

    def find(self, identifier: str) -> Strategy:
        """Return the strategy for ``group:artifact[:type][:classifier]``."""
        strategy = self._exact.get(identifier)
        if strategy is not None:
            return strategy
        strategy = self._memo.get(identifier)
        if strategy is not None:
            return strategy

        parts = identifier.split(":")
        group_id = parts[0]
        artifact_id = parts[1] if len(parts) > 1 else ""

        strategy = self._exact.get(f"{group_id}:{artifact_id}") if len(parts) > 2 else None
        if strategy is None:
            strategy = self._exact.get(group_id)
        if strategy is None:
            for rule in self._patterns:
                if rule.matches(group_id, artifact_id):
                    strategy = rule.strategy
                    break
        if strategy is None:
            strategy = self.default

        with self._lock:
            self._memo[identifier] = strategy
        logger.debug("Strategy for %s is %s", identifier, strategy.strategy_name)
        return strategy
