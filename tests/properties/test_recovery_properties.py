"""Property-based tests for the error handler.

- Escalation happens exactly when occurrences exceed the threshold
- Rollback runs newest-first and survives failing steps
- Records always carry the severity of their code
- Recurrence keys ignore context key order
"""

from pathlib import Path

import anyio
from hypothesis import given, settings, strategies as st

from launchpad.enums import ErrorCode, RecoveryStrategy
from launchpad.recovery import ErrorHandler, ErrorRecord

codes = st.sampled_from(list(ErrorCode))


def make_handler(threshold: int = 3) -> ErrorHandler:
    return ErrorHandler(
        run_id="prop", dump_dir=Path("unused"), escalation_threshold=threshold
    )


@given(codes, st.integers(min_value=1, max_value=20), st.integers(min_value=1, max_value=6))
def test_escalates_only_above_threshold(code: ErrorCode, occurrences: int, threshold: int) -> None:
    record = ErrorRecord.create(code, "failure")

    strategy = make_handler(threshold).select_strategy(record, occurrences)

    assert (strategy is RecoveryStrategy.ESCALATE) == (occurrences > threshold)


@given(codes)
def test_record_severity_follows_code(code: ErrorCode) -> None:
    assert ErrorRecord.create(code, "failure").severity is code.severity


@settings(deadline=None)
@given(st.lists(st.booleans(), max_size=12))
def test_rollback_is_lifo_and_complete(failures: list[bool]) -> None:
    handler = make_handler()
    ran: list[int] = []

    for index, fails in enumerate(failures):

        def undo(index: int = index, fails: bool = fails) -> None:
            ran.append(index)
            if fails:
                msg = f"undo {index} failed"
                raise RuntimeError(msg)

        _ = handler.register_rollback(f"step {index}", undo)

    results = anyio.run(handler.execute_rollback)

    assert ran == list(reversed(range(len(failures))))
    assert [not r.success for r in results] == list(reversed(failures))
    assert handler.rollback_depth == 0


@given(st.dictionaries(st.text(max_size=8), st.integers(), max_size=6), codes)
def test_attempt_key_ignores_context_order(context: dict[str, int], code: ErrorCode) -> None:
    reordered = dict(reversed(list(context.items())))

    assert ErrorHandler.attempt_key(code, context) == ErrorHandler.attempt_key(code, reordered)
