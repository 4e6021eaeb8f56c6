"""Tests for child environment composition."""
import pytest

from secenv.secrets.domains.errors import ConfigurationError
from secenv.secrets.domains.models import ResolvedEnvironment
from secenv.secrets.workflows.environment import (
    compile_keep_pattern,
    compose,
    format_variables,
)

HOST = {"PATH": "/usr/bin", "HOME": "/home/me", "LC_ALL": "C", "LANG": "en_US.UTF-8", "SECRET": "host"}


def _patterns(sources):
    return [compile_keep_pattern(source) for source in sources]


class TestCompose:
    """Test suite for compose()."""

    def test_no_keep_inherits_everything(self):
        env = compose({"APP": "1"}, HOST)
        assert env == {**HOST, "APP": "1"}

    def test_empty_keep_inherits_nothing(self):
        env = compose({"APP": "1"}, HOST, keep_patterns=[])
        assert env == {"APP": "1"}

    def test_keep_filters_host_variables(self):
        env = compose({"SECRET": "from-manifest", "APP": "1"}, HOST, _patterns(["^PATH$"]))
        assert env == {"PATH": "/usr/bin", "SECRET": "from-manifest", "APP": "1"}

    def test_keep_patterns_are_not_anchored(self):
        env = compose({}, HOST, _patterns(["LC_", "AT"]))
        # "AT" matches PATH; "LC_" matches LC_ALL.
        assert env == {"PATH": "/usr/bin", "LC_ALL": "C"}

    def test_any_pattern_is_enough(self):
        env = compose({}, HOST, _patterns(["^HOME$", "^LANG$"]))
        assert set(env) == {"HOME", "LANG"}

    def test_resolved_wins_on_collision(self):
        env = compose({"PATH": "/opt/bin"}, HOST)
        assert env["PATH"] == "/opt/bin"

    def test_resolved_kept_even_when_not_matching(self):
        env = compose({"APP": "1"}, HOST, _patterns(["^NOTHING$"]))
        assert env == {"APP": "1"}

    def test_inputs_are_not_modified(self):
        host = dict(HOST)
        resolved = ResolvedEnvironment({"PATH": "/opt/bin"})
        compose(resolved, host, _patterns([]))
        assert host == HOST
        assert dict(resolved) == {"PATH": "/opt/bin"}

    def test_property_for_sampled_inputs(self):
        resolved = {"SECRET": "x", "APP": "y"}
        patterns = _patterns(["^P", "^L"])
        env = compose(resolved, HOST, patterns)
        for name, value in resolved.items():
            assert env[name] == value
        for name in set(env) - set(resolved):
            assert env[name] == HOST[name]
            assert any(p.search(name) for p in patterns)


class TestKeepPatterns:
    """Test suite for keep pattern compilation."""

    def test_invalid_pattern(self):
        with pytest.raises(ConfigurationError, match="invalid keep pattern"):
            compile_keep_pattern("([unclosed")


class TestFormatVariables:
    """Test suite for NAME=VALUE output."""

    def test_sorted_and_unquoted(self):
        lines = format_variables({"ZED": "last", "ALPHA": "a b", "MID": "x=y"})
        assert lines == ["ALPHA=a b", "MID=x=y", "ZED=last"]

    def test_empty(self):
        assert format_variables({}) == []


class TestResolvedEnvironment:
    """Test suite for the resolved variable mapping."""

    def test_rejects_name_with_equals(self):
        with pytest.raises(ConfigurationError):
            ResolvedEnvironment({"A=B": "x"})

    def test_rejects_nul_in_value(self):
        with pytest.raises(ConfigurationError):
            ResolvedEnvironment({"A": "x\x00y"})

    def test_repr_hides_values(self):
        env = ResolvedEnvironment({"TOKEN": "s3cret"})
        assert "s3cret" not in repr(env)
        assert "TOKEN" in repr(env)
