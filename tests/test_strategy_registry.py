"""Tests for the strategy registry lookup order."""
import logging

import pytest

from errors import ConfigurationError
from versioning.models import ResolverDefinition
from versioning.strategies import Strategy
from versioning.strategy_registry import StrategyRegistry


def registry(*rules, default="default"):
    return StrategyRegistry(default, [ResolverDefinition(name, tuple(includes)) for name, includes in rules])


class TestLookup:
    def test_default_when_nothing_matches(self):
        assert registry().find("org.example:lib") is Strategy.DEFAULT

    def test_configured_default(self):
        assert registry(default="apr").find("org.example:lib") is Strategy.APR

    def test_exact_identifier(self):
        reg = registry(("apr", ["org.apache:commons-lang"]))
        assert reg.find("org.apache:commons-lang") is Strategy.APR
        assert reg.find("org.apache:commons-io") is Strategy.DEFAULT

    def test_exact_group(self):
        reg = registry(("single-digit", ["com.google.guava"]))
        assert reg.find("com.google.guava:guava") is Strategy.SINGLE_DIGIT

    def test_exact_identifier_beats_group(self):
        reg = registry(("single-digit", ["org.apache"]), ("apr", ["org.apache:httpd"]))
        assert reg.find("org.apache:httpd") is Strategy.APR
        assert reg.find("org.apache:ant") is Strategy.SINGLE_DIGIT

    def test_group_pattern(self):
        reg = registry(("two-digits-backward-compatible", ["org.spring*"]))
        assert reg.find("org.springframework:spring-core") is Strategy.TWO_DIGITS_BACKWARD_COMPATIBLE
        assert reg.find("org.hibernate:hibernate-core") is Strategy.DEFAULT

    def test_group_and_artifact_pattern(self):
        reg = registry(("apr", ["org.*:foo-*"]))
        assert reg.find("org.example:foo-bar") is Strategy.APR
        assert reg.find("org.example:bar") is Strategy.DEFAULT

    def test_dot_is_literal_in_patterns(self):
        reg = registry(("apr", ["org.ex*"]))
        assert reg.find("orgXexample:lib") is Strategy.DEFAULT

    def test_first_pattern_wins(self):
        reg = registry(("apr", ["org.*"]), ("single-digit", ["org.example*"]))
        assert reg.find("org.example:lib") is Strategy.APR

    def test_identifier_with_type_and_classifier(self):
        reg = registry(("apr", ["g:a"]), ("single-digit", ["h*"]))
        assert reg.find("g:a:test-jar") is Strategy.APR
        assert reg.find("h:b:war:sources") is Strategy.SINGLE_DIGIT


class TestMemoization:
    def test_repeated_lookups_are_identical(self):
        reg = registry(("apr", ["org.*"]))
        first = reg.find("org.example:lib")
        second = reg.find("org.example:lib")
        assert first is second is Strategy.APR

    def test_default_lookups_are_stable(self):
        reg = registry()
        assert reg.find("x:y") is reg.find("x:y")


class TestConfiguration:
    def test_unknown_strategy_in_rule(self):
        with pytest.raises(ConfigurationError):
            registry(("semver", ["org.example"]))

    def test_unknown_default_strategy(self):
        with pytest.raises(ConfigurationError):
            registry(default="newest")

    def test_duplicate_include_warns_and_later_rule_wins(self, caplog):
        with caplog.at_level(logging.WARNING):
            reg = registry(("apr", ["org.example"]), ("single-digit", ["org.example"]))
        assert "A strategy for 'org.example' was already defined: apr" in caplog.text
        assert reg.find("org.example:lib") is Strategy.SINGLE_DIGIT

    def test_blank_includes_are_ignored(self):
        reg = registry(("apr", ["", "  "]))
        assert reg.find("org.example:lib") is Strategy.DEFAULT
