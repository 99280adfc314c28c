"""Property-based tests for phase tracking and dotenv parsing."""

import pytest
from hypothesis import given, strategies as st

from launchpad.enums import Phase
from launchpad.exceptions import PhaseTransitionError
from launchpad.orchestrator import PhaseTracker, env_names, parse_version

ORDER = list(Phase)


@given(st.lists(st.sampled_from(ORDER), max_size=15))
def test_tracker_never_moves_backwards(requested: list[Phase]) -> None:
    tracker = PhaseTracker()

    for phase in requested:
        before = tracker.current
        if ORDER.index(phase) < ORDER.index(before):
            with pytest.raises(PhaseTransitionError):
                tracker.advance(phase)
            assert tracker.current is before
        else:
            tracker.advance(phase)
            assert tracker.current is phase

    indices = [ORDER.index(entry.phase) for entry in tracker.history]
    assert indices == sorted(set(indices))


names = st.from_regex(r"[A-Z_][A-Z0-9_]{0,12}", fullmatch=True)


@given(st.lists(names, unique=True, max_size=8))
def test_env_names_finds_every_assignment(variables: list[str]) -> None:
    text = "\n".join(f"# comment\n{name}=value" for name in variables)

    assert env_names(text) == variables


@given(st.tuples(*[st.integers(min_value=0, max_value=999)] * 3))
def test_parse_version_reads_dotted_triples(version: tuple[int, int, int]) -> None:
    assert parse_version("v{}.{}.{}".format(*version)) == version
