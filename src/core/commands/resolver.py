"""
Candidate resolution for targeted commands.

Scores a user's jobs against a company/position hint, ranks them
deterministically and decides whether the best one is strong enough to act
on without asking.

Field score (haystack H against query N, case-insensitive):
    4  exact match after accent folding
    3  N appears in H on word boundaries
    2  N is a raw substring of H
    2  alphanumeric-only forms contain one another
    0  otherwise

Candidate score = company * w_company + position * w_position (+1 unless ARCHIVED).
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from core.commands.args import TargetHint
from core.commands.normalization import alnum_only, fold
from db.enums import CommandIntent
from features.jobs.repo import JobRecord

NON_ARCHIVED_BONUS = 1
MIN_SCORE_GAP = 2
"""
The leader is applied only when it beats the runner-up by MORE than this.
One tier of company evidence (exact 4 vs word-boundary 3, weighted x2) is
exactly 2 points, so "move acme to interview" against Acme and Acme Corp asks.
"""


@dataclass(frozen=True)
class ScoringPolicy:
    company_weight: int
    position_weight: int
    confidence_floor: int


# Stage moves need stronger evidence than comments
STAGE_MOVE_POLICY = ScoringPolicy(company_weight=2, position_weight=2, confidence_floor=4)
COMMENT_POLICY = ScoringPolicy(company_weight=2, position_weight=1, confidence_floor=3)


def policy_for(intent: CommandIntent) -> ScoringPolicy:
    if intent == CommandIntent.COMMENT:
        return COMMENT_POLICY
    return STAGE_MOVE_POLICY


@dataclass(frozen=True)
class CandidateScore:
    job: JobRecord
    score: int


@dataclass
class Resolution:
    """Outcome of one ranking call: a target when confident, otherwise options."""
    target: Optional[JobRecord] = None
    ranked: List[CandidateScore] = field(default_factory=list)

    @property
    def confident(self) -> bool:
        return self.target is not None

    def options(self, limit: int = 5) -> List[dict]:
        return [candidate.job.summary() for candidate in self.ranked[:limit]]


def field_score(haystack: Optional[str], query: Optional[str]) -> int:
    if not haystack or not query or not query.strip():
        return 0
    folded_h = fold(haystack)
    folded_q = fold(query)
    if folded_h == folded_q:
        return 4
    if re.search(r"(?<!\w)" + re.escape(folded_q) + r"(?!\w)", folded_h):
        return 3
    if query.strip().lower() in haystack.lower():
        return 2
    alnum_h = alnum_only(haystack)
    alnum_q = alnum_only(query)
    if alnum_h and alnum_q and (alnum_q in alnum_h or alnum_h in alnum_q):
        return 2
    return 0


def score_candidate(job: JobRecord, hint: TargetHint, policy: ScoringPolicy) -> CandidateScore:
    score = (field_score(job.company, hint.company) * policy.company_weight
             + field_score(job.position, hint.position) * policy.position_weight)
    if not job.is_archived:
        score += NON_ARCHIVED_BONUS
    return CandidateScore(job=job, score=score)


def rank(candidates: Sequence[JobRecord], hint: TargetHint,
         policy: ScoringPolicy) -> List[CandidateScore]:
    """
    Score and order candidates.

    Order: score descending, then most recently updated, then job id
    ascending, so identical inputs always produce the same order.
    """
    scored = [score_candidate(job, hint, policy) for job in candidates]
    # Stable sorts applied from the least to the most significant key
    scored.sort(key=lambda c: c.job.job_id)
    scored.sort(key=lambda c: c.job.updated_at, reverse=True)
    scored.sort(key=lambda c: c.score, reverse=True)
    return scored


def is_confident(ranked: Sequence[CandidateScore], policy: ScoringPolicy) -> bool:
    if not ranked:
        return False
    top = ranked[0]
    if top.score < policy.confidence_floor:
        return False
    if len(ranked) == 1:
        return True
    return top.score - ranked[1].score > MIN_SCORE_GAP


def resolve(candidates: Sequence[JobRecord], hint: TargetHint,
            policy: ScoringPolicy) -> Resolution:
    ranked = rank(candidates, hint, policy)
    if is_confident(ranked, policy):
        return Resolution(target=ranked[0].job, ranked=ranked)
    return Resolution(target=None, ranked=ranked)
