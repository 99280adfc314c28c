"""Property-based tests for configuration merging and env parsing."""

from typing import Any

from hypothesis import given, strategies as st

from launchpad.config import deep_merge, parse_env_value

keys = st.text(alphabet="abcdefghij_", min_size=1, max_size=6)
scalars = st.one_of(st.integers(), st.booleans(), st.text(max_size=10))
values = st.recursive(
    scalars,
    lambda children: st.dictionaries(keys, children, max_size=3),
    max_leaves=8,
)
configs = st.dictionaries(keys, values, max_size=4)


@given(configs)
def test_merging_into_empty_copies(config: dict[str, Any]) -> None:  # pyright: ignore[reportExplicitAny]
    assert deep_merge({}, config) == config
    assert deep_merge(config, {}) == config


@given(configs, configs)
def test_override_keys_win(base: dict[str, Any], override: dict[str, Any]) -> None:  # pyright: ignore[reportExplicitAny]
    merged = deep_merge(base, override)

    for key, value in override.items():
        if not isinstance(value, dict):
            assert merged[key] == value
    assert set(merged) == set(base) | set(override)


@given(st.integers())
def test_integers_parse_as_int(value: int) -> None:
    assert parse_env_value(str(value)) == value


@given(st.text(alphabet="abcdefghijklmnopqrstuvwxyz-_/", min_size=1, max_size=20))
def test_plain_words_stay_strings(value: str) -> None:
    if value.lower() in {"true", "false"}:
        assert isinstance(parse_env_value(value), bool)
    else:
        assert parse_env_value(value) == value
