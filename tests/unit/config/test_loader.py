# pyright: reportAny=false, reportUnknownArgumentType=false
from pathlib import Path

import pytest

from launchpad.config import (
    deep_merge,
    parse_env_value,
    parse_env_vars,
    read_toml_file,
)
from launchpad.config._loader import set_nested_key
from launchpad.exceptions import ConfigLoadError


class TestReadTomlFile:
    def test_parses_valid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "launchpad.toml"
        _ = path.write_text('[ports]\nhost = "127.0.0.1"\nmax_retries = 2\n')

        assert read_toml_file(path) == {"ports": {"host": "127.0.0.1", "max_retries": 2}}

    def test_raises_file_not_found_for_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            _ = read_toml_file(tmp_path / "missing.toml")

    def test_raises_config_load_error_with_location(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        _ = path.write_text('[valid]\nkey = "value"\n\n[invalid section\n')

        with pytest.raises(ConfigLoadError) as exc_info:
            _ = read_toml_file(path)

        error = exc_info.value
        assert error.path == path
        assert error.line == 4
        assert error.column is not None
        assert exc_info.value.__cause__ is not None


class TestDeepMerge:
    def test_merges_nested_dicts(self) -> None:
        base = {"ports": {"host": "0.0.0.0", "max_retries": 5}}
        override = {"ports": {"max_retries": 2}}

        assert deep_merge(base, override) == {"ports": {"host": "0.0.0.0", "max_retries": 2}}

    def test_replaces_lists_entirely(self) -> None:
        base = {"cleanup": {"targets": ["dist", "coverage"]}}
        override = {"cleanup": {"targets": [".next"]}}

        assert deep_merge(base, override)["cleanup"]["targets"] == [".next"]

    def test_scalar_replaces_dict(self) -> None:
        assert deep_merge({"a": {"b": 1}}, {"a": 2}) == {"a": 2}

    def test_does_not_modify_inputs(self) -> None:
        base = {"a": {"b": [1, 2]}}
        override = {"a": {"c": 3}}

        result = deep_merge(base, override)
        result["a"]["b"].append(99)

        assert base == {"a": {"b": [1, 2]}}
        assert override == {"a": {"c": 3}}


class TestParseEnvValue:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("true", True),
            ("FALSE", False),
            ("5000", 5000),
            ("1.5", 1.5),
            ('["npm", "ci"]', ["npm", "ci"]),
            ('{"backend": 5000}', {"backend": 5000}),
            ("127.0.0.1", "127.0.0.1"),
            ("yes", "yes"),
            ("[not json", "[not json"),
        ],
    )
    def test_infers_types(self, raw: str, expected: object) -> None:
        assert parse_env_value(raw) == expected


class TestParseEnvVars:
    def test_maps_double_underscore_to_nesting(self) -> None:
        environ = {
            "LAUNCHPAD_RETRY__MAX_ATTEMPTS": "5",
            "LAUNCHPAD_PORTS__HOST": "127.0.0.1",
            "PATH": "/usr/bin",
        }

        assert parse_env_vars(environ=environ) == {
            "retry": {"max_attempts": 5},
            "ports": {"host": "127.0.0.1"},
        }

    def test_ignores_bare_prefix(self) -> None:
        assert parse_env_vars(environ={"LAUNCHPAD_": "x"}) == {}

    def test_custom_prefix(self) -> None:
        assert parse_env_vars("APP_", {"APP_LOGGING__LEVEL": "debug"}) == {
            "logging": {"level": "debug"}
        }


class TestSetNestedKey:
    def test_creates_intermediate_dicts(self) -> None:
        d: dict[str, object] = {}
        set_nested_key(d, "a.b.c", 1)
        assert d == {"a": {"b": {"c": 1}}}

    def test_replaces_non_dict_intermediate(self) -> None:
        d: dict[str, object] = {"a": 1}
        set_nested_key(d, "a.b", 2)
        assert d == {"a": {"b": 2}}
