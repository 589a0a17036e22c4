"""Three-way diff of local snapshot, baseline and a peer's files."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from .conflict import ConflictStrategy, decision_for
from .protocol import RemoteFileRecord, SyncDecision
from .snapshot import Snapshot

logger = logging.getLogger("vaultsync.sync.engine")


@dataclass(frozen=True)
class ConflictRecord:
    """A path whose content changed on both sides since the baseline."""

    path: str
    local_hash: str
    remote_hash: str
    baseline_hash: Optional[str]
    resolution: SyncDecision

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "local_hash": self.local_hash,
            "remote_hash": self.remote_hash,
            "baseline_hash": self.baseline_hash,
            "resolution": self.resolution.value,
        }


@dataclass
class SyncPlan:
    """Decisions for every path seen locally or on the peer."""

    decisions: Dict[str, SyncDecision] = field(default_factory=dict)
    conflicts: List[ConflictRecord] = field(default_factory=list)

    def _paths(self, decision: SyncDecision) -> List[str]:
        return sorted(path for path, value in self.decisions.items() if value == decision)

    @property
    def pulls(self) -> List[str]:
        return self._paths(SyncDecision.PULL)

    @property
    def pushes(self) -> List[str]:
        return self._paths(SyncDecision.PUSH)

    @property
    def skips(self) -> List[str]:
        return self._paths(SyncDecision.SKIP)

    @property
    def unresolved(self) -> List[str]:
        return self._paths(SyncDecision.CONFLICT)

    @property
    def has_changes(self) -> bool:
        return any(value != SyncDecision.SKIP for value in self.decisions.values())

    def summary(self) -> str:
        parts = []
        if self.pulls:
            parts.append(f"{len(self.pulls)} to pull")
        if self.pushes:
            parts.append(f"{len(self.pushes)} to push")
        if self.conflicts:
            parts.append(f"{len(self.conflicts)} conflicts")
        if self.unresolved:
            parts.append(f"{len(self.unresolved)} unresolved")
        return ", ".join(parts) if parts else "no changes"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decisions": {path: value.value for path, value in sorted(self.decisions.items())},
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


def compute_decisions(
    local: Snapshot,
    baseline: Snapshot,
    remote: Mapping[str, RemoteFileRecord],
    *,
    local_exists: Optional[Callable[[str], bool]] = None,
    strategy: ConflictStrategy = ConflictStrategy.REMOTE_WINS,
) -> SyncPlan:
    """Decide, per path, whether to pull, push or skip.

    For each remote path: pull when absent locally; skip when the digests
    match; otherwise pull when the remote digest diverged from the baseline
    and the local file exists, else leave the local copy in place. A path
    whose local digest also diverged from the baseline is a conflict and is
    settled by ``strategy``. Every local path not pulled is then pushed.

    Pure function: inputs are not mutated.
    """
    plan = SyncPlan()
    conflict_decision = decision_for(strategy)

    for path in sorted(remote):
        remote_hash = remote[path].hash
        local_hash = local.get(path)

        if local_hash is None:
            plan.decisions[path] = SyncDecision.PULL
            continue

        if local_hash == remote_hash:
            plan.decisions[path] = SyncDecision.SKIP
            continue

        base_hash = baseline.get(path)
        exists = local_exists(path) if local_exists is not None else True

        if base_hash != remote_hash and exists:
            if base_hash != local_hash:
                plan.conflicts.append(
                    ConflictRecord(
                        path=path,
                        local_hash=local_hash,
                        remote_hash=remote_hash,
                        baseline_hash=base_hash,
                        resolution=conflict_decision,
                    )
                )
                plan.decisions[path] = conflict_decision
                logger.warning(
                    "Conflict on %s: both sides changed since baseline, resolving as %s",
                    path,
                    conflict_decision.value,
                )
            else:
                plan.decisions[path] = SyncDecision.PULL
        else:
            # Local copy presumed newer; it is offered back below
            plan.decisions[path] = SyncDecision.SKIP

    for path in local:
        if plan.decisions.get(path) not in (SyncDecision.PULL, SyncDecision.CONFLICT):
            plan.decisions[path] = SyncDecision.PUSH

    logger.info("Computed sync plan: %s", plan.summary())
    return plan


__all__ = ["ConflictRecord", "SyncPlan", "compute_decisions"]
