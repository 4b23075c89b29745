"""
Sign classification for waterfall stages.

Three configuration tiers decide whether a stage adds to or subtracts from
the running total, evaluated strictly in this order:

1. EXPLICIT: a non-empty set of negative stage labels. Members are -1,
   everything else +1. Start stage and position are ignored.
2. START_STAGE: a named start stage. The start stage (and anything at or
   before its first occurrence) is +1; later stages are -1 when
   `after_start_negative` is set, else +1. If the label matches no row the
   first row takes the start role.
3. POSITIONAL: first row +1, all others -1.

The policy is resolved once per layout against the full list of stage labels
and then applied with `classify_sign`, so every pivot in a stage shares the
stage's sign.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)


class SignTier(Enum):
    EXPLICIT = "explicit_negative_labels"
    START_STAGE = "start_stage"
    POSITIONAL = "positional"


@dataclass(frozen=True)
class SignPolicy:
    tier: SignTier
    negative_labels: FrozenSet[str] = frozenset()
    start_label: Optional[str] = None
    start_index: int = 0                 # first row matching start_label, 0 when unmatched
    start_found: bool = False
    start_match_count: int = 0
    after_start_negative: bool = False

    @property
    def ambiguous_start(self) -> bool:
        return self.start_match_count > 1


def _match_key(label) -> str:
    """Stage labels and configured labels compare on the same stripped text."""
    return "" if label is None else str(label).strip()


def normalize_labels(labels: Optional[Iterable[str]]) -> FrozenSet[str]:
    """Strip labels and drop blanks; a bare string is split on commas."""
    if not labels:
        return frozenset()
    if isinstance(labels, str):
        labels = labels.split(",")
    return frozenset(str(label).strip() for label in labels if str(label).strip())


def resolve_sign_policy(
    stage_labels: Sequence[str],
    negative_stage_labels: Optional[Iterable[str]] = None,
    start_stage_label: Optional[str] = None,
    treat_after_start_as_negative: bool = False,
) -> SignPolicy:
    """
    Resolve the sign tier for one layout computation.

    Args:
        stage_labels: Stage labels in presentation order
        negative_stage_labels: Explicit negative labels (tier 1)
        start_stage_label: Start stage label (tier 2)
        treat_after_start_as_negative: Sign stages after the start as -1 (tier 2)

    Returns:
        SignPolicy to pass to classify_sign for every stage
    """
    negatives = normalize_labels(negative_stage_labels)
    if negatives:
        logger.debug(f"[SIGN] tier=explicit, negatives={sorted(negatives)}")
        return SignPolicy(tier=SignTier.EXPLICIT, negative_labels=negatives)

    start = (start_stage_label or "").strip()
    if start:
        matches = [i for i, label in enumerate(stage_labels) if _match_key(label) == start]
        policy = SignPolicy(
            tier=SignTier.START_STAGE,
            start_label=start,
            start_index=matches[0] if matches else 0,
            start_found=bool(matches),
            start_match_count=len(matches),
            after_start_negative=bool(treat_after_start_as_negative),
        )
        logger.debug(
            f"[SIGN] tier=start_stage, start='{start}', index={policy.start_index}, "
            f"found={policy.start_found}, after_negative={policy.after_start_negative}"
        )
        return policy

    logger.debug("[SIGN] tier=positional")
    return SignPolicy(tier=SignTier.POSITIONAL)


def classify_sign(stage_label: str, row_index: int, policy: SignPolicy) -> int:
    """Return +1 or -1 for one stage under `policy`."""
    if policy.tier is SignTier.EXPLICIT:
        return -1 if _match_key(stage_label) in policy.negative_labels else 1

    if policy.tier is SignTier.START_STAGE:
        if policy.start_found and _match_key(stage_label) == policy.start_label:
            return 1
        if row_index <= policy.start_index:
            return 1
        return -1 if policy.after_start_negative else 1

    return 1 if row_index == 0 else -1


def stage_signs(stage_labels: Sequence[str], policy: SignPolicy) -> List[int]:
    return [classify_sign(label, i, policy) for i, label in enumerate(stage_labels)]
