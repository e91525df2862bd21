"""Merge and conflict resolution for vault account collections.

Every write to the vault goes through :func:`merge`, whether it comes from a
local edit or from an imported vault. That keeps one invariant true after
each commit: at most one account per identity key
(``lowercase(site)|lowercase(user)``), with any divergent password recorded
as a :class:`ConflictEntry` until the user picks a side via :func:`resolve`.

How it works:
    1. Accounts are grouped by identity key in encounter order.
    2. Each group is folded left to right against a kept candidate.
       - Same password: last write wins (greater ``updated_at``).
       - Different password: a conflict ``(kept, next)`` is recorded unless
         one for the same identity and the same pair of passwords already
         exists, in either order. The kept candidate stays in place.
    3. The output holds one representative per identity plus the prior
       conflicts followed by the newly detected ones.

Both functions are pure: inputs are never mutated.
"""

import copy
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Sequence, Set, Tuple

from .errors import ConflictNotFound
from .models import AccountEntry, ConflictEntry, identity_key

logger = logging.getLogger(__name__)


class ResolutionChoice(str, Enum):
    LOCAL = "local"
    IMPORTED = "imported"


@dataclass
class MergeResult:
    accounts: List[AccountEntry] = field(default_factory=list)
    conflicts: List[ConflictEntry] = field(default_factory=list)
    new_conflicts: List[ConflictEntry] = field(default_factory=list)


def _pair_signature(identity: str, first: str, second: str) -> Tuple[str, frozenset]:
    return identity, frozenset((first, second))


def _signature(conflict: ConflictEntry) -> Tuple[str, frozenset]:
    return conflict.identity, conflict.password_pair()


def merge(
    accounts: Sequence[AccountEntry],
    conflicts: Iterable[ConflictEntry] = (),
) -> MergeResult:
    """Reduce ``accounts`` to one entry per identity, detecting conflicts.

    Args:
        accounts: Accounts in priority order. When two copies of a vault are
            combined, local accounts come first so they end up on the
            "local" side of any new conflict.
        conflicts: Conflicts already known to the vault.

    Returns:
        MergeResult with the representatives, the full conflict list and the
        subset of conflicts detected by this call.
    """
    prior = [copy.deepcopy(c) for c in conflicts]
    known: Set[Tuple[str, frozenset]] = {_signature(c) for c in prior}

    groups: "OrderedDict[str, List[AccountEntry]]" = OrderedDict()
    for account in accounts:
        groups.setdefault(account.identity, []).append(account)

    kept: List[AccountEntry] = []
    detected: List[ConflictEntry] = []

    for identity, members in groups.items():
        candidate = members[0]
        for entry in members[1:]:
            if entry.password == candidate.password:
                if entry.updated_at > candidate.updated_at:
                    candidate = entry
                continue

            signature = _pair_signature(identity, candidate.password, entry.password)
            if signature in known:
                continue
            known.add(signature)
            detected.append(
                ConflictEntry(
                    site=entry.site,
                    user=entry.user,
                    version_local=copy.deepcopy(candidate),
                    version_imported=copy.deepcopy(entry),
                )
            )
        kept.append(copy.deepcopy(candidate))

    if detected:
        logger.info("Merge detected %d new conflict(s)", len(detected))

    return MergeResult(
        accounts=kept,
        conflicts=prior + detected,
        new_conflicts=detected,
    )


def resolve(
    accounts: Sequence[AccountEntry],
    conflicts: Sequence[ConflictEntry],
    conflict_id: str,
    choice: ResolutionChoice,
) -> MergeResult:
    """Settle one conflict by keeping the chosen version.

    Every account sharing the conflict's identity is removed, the chosen
    version is appended and the conflict is dropped.

    Raises:
        ConflictNotFound: No conflict with ``conflict_id``.
        ValueError: ``choice`` is not "local" or "imported".
    """
    choice = ResolutionChoice(choice)

    target = None
    for conflict in conflicts:
        if conflict.conflict_id == conflict_id:
            target = conflict
            break
    if target is None:
        raise ConflictNotFound(f"Conflict not found: {conflict_id}")

    chosen = target.version_local if choice is ResolutionChoice.LOCAL else target.version_imported
    identity = identity_key(target.site, target.user)

    remaining = [copy.deepcopy(a) for a in accounts if a.identity != identity]
    remaining.append(copy.deepcopy(chosen))

    return MergeResult(
        accounts=remaining,
        conflicts=[copy.deepcopy(c) for c in conflicts if c.conflict_id != conflict_id],
    )


def union_conflicts(
    first: Iterable[ConflictEntry],
    second: Iterable[ConflictEntry],
) -> List[ConflictEntry]:
    """Concatenate two conflict lists, dropping repeats.

    A conflict repeats another when it has the same id, or the same identity
    and the same unordered pair of passwords.
    """
    seen_ids: Set[str] = set()
    seen_pairs: Set[Tuple[str, frozenset]] = set()
    result: List[ConflictEntry] = []
    for conflict in list(first) + list(second):
        signature = _signature(conflict)
        if conflict.conflict_id in seen_ids or signature in seen_pairs:
            continue
        seen_ids.add(conflict.conflict_id)
        seen_pairs.add(signature)
        result.append(copy.deepcopy(conflict))
    return result
