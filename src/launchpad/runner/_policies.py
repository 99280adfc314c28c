"""Critical command policies.

A command whose rendered line contains a policy's ``match`` text (case
insensitive) is critical: between failed attempts the runner executes the
policy's cleanup commands and removes its paths before trying again.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from ._models import CommandSpec

_NPM_CACHE_CLEAN = CommandSpec.of("npm", "cache", "clean", "--force")


@dataclass(frozen=True, slots=True)
class CriticalCommandPolicy:
    """Cleanup applied between attempts of a critical command.

    Attributes:
        match: Case-insensitive substring identifying the command.
        cleanup_commands: Commands run before the next attempt.
        remove_paths: Paths removed before the next attempt, relative to the
            command's working directory.
        remove_when: If set, paths are removed only when the failure output
            contains this text.
    """

    match: str
    cleanup_commands: tuple[CommandSpec, ...] = ()
    remove_paths: tuple[Path, ...] = ()
    remove_when: str | None = None

    def matches(self, rendered: str) -> bool:
        """Return True if this policy applies to the rendered command."""
        return self.match.lower() in rendered.lower()

    def should_remove_paths(self, failure_output: str) -> bool:
        """Return True if the partial output paths should be removed."""
        if not self.remove_paths:
            return False
        return self.remove_when is None or self.remove_when in failure_output


DEFAULT_CRITICAL_POLICIES: tuple[CriticalCommandPolicy, ...] = (
    CriticalCommandPolicy(
        match="npm install",
        cleanup_commands=(_NPM_CACHE_CLEAN,),
        remove_paths=(Path("node_modules"),),
        remove_when="ENOENT",
    ),
    CriticalCommandPolicy(match="npm ci", cleanup_commands=(_NPM_CACHE_CLEAN,)),
    CriticalCommandPolicy(match="npm run build", remove_paths=(Path("dist"),)),
)


def find_policy(
    policies: Iterable[CriticalCommandPolicy],
    rendered: str,
) -> CriticalCommandPolicy | None:
    """Return the first policy matching ``rendered``, or None if it is not critical."""
    for policy in policies:
        if policy.matches(rendered):
            return policy
    return None
