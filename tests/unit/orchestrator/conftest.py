from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from launchpad.config import LaunchpadConfig
from launchpad.orchestrator import OrchestrationContext
from launchpad.recovery import ErrorRecord
from tests.conftest import FakePlatform, SleepRecorder

type ContextFactory = Callable[..., OrchestrationContext]


@pytest.fixture
def make_context(
    project_root: Path,
    fake_platform: FakePlatform,
    sleep_recorder: SleepRecorder,
    make_config: Callable[..., LaunchpadConfig],
) -> ContextFactory:
    """Return a factory for run contexts over the test project."""

    def _make(
        notifier: Callable[[ErrorRecord, Path | None], object] | None = None,
        **sections: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    ) -> OrchestrationContext:
        return OrchestrationContext.create(
            make_config(**sections),
            project_root=project_root,
            run_id="test-run",
            platform=fake_platform,
            sleep=sleep_recorder,
            notifier=notifier,
        )

    return _make
