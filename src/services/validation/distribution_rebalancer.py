"""
Correctness-preserving repair of the correct-letter sequence of a batch.

Relabelling an item is a cyclic rotation of its four options: the text of
the correct option stays correct, it just moves to another letter.
"""
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple

from src.core.config import QAConfig
from src.core.constants import LETTERS
from src.models.question_models import CandidateItem, Rotation

logger = logging.getLogger(__name__)


@dataclass
class RebalanceResult:
    items: List[CandidateItem]
    rotations: List[Rotation] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.rotations)


class DistributionRebalancer:
    """Break up long runs of one letter and enforce a minimum letter diversity."""

    def __init__(self, config: QAConfig):
        self.config = config

    def _find_long_run(self, letters: Sequence[str]) -> Optional[Tuple[int, int]]:
        """(start, end) of the first run longer than ``max_run``; end is exclusive."""
        start = 0
        for i in range(1, len(letters) + 1):
            if i == len(letters) or letters[i] != letters[start]:
                if i - start > self.config.max_run:
                    return start, i
                start = i
        return None

    def _required_distinct(self, size: int) -> int:
        return min(self.config.min_distinct_letters, size, len(LETTERS))

    @staticmethod
    def _least_used(letters: Sequence[str], position: int, exclude: Set[str]) -> str:
        counts = Counter(letter for i, letter in enumerate(letters) if i != position)
        candidates = [letter for letter in LETTERS if letter not in exclude]
        # min() keeps the first of equal counts, so ties resolve alphabetically
        return min(candidates, key=lambda letter: counts[letter])

    def find_violations(self, letters: Sequence[str]) -> List[str]:
        """Human-readable list of remaining distribution problems."""
        violations = []
        start = 0
        for i in range(1, len(letters) + 1):
            if i == len(letters) or letters[i] != letters[start]:
                if i - start > self.config.max_run:
                    violations.append(
                        f"letter {letters[start]} is correct {i - start} times in a row "
                        f"(questions {start + 1}-{i}, max {self.config.max_run})"
                    )
                start = i
        distinct = len(set(letters))
        required = self._required_distinct(len(letters))
        if distinct < required:
            violations.append(f"only {distinct} distinct correct letters (at least {required} required)")
        return violations

    def plan(self, letters: Sequence[str]) -> List[str]:
        """
        Target letter for every position.

        Run repair: positions past ``max_run`` inside an over-long run get
        the least-used letter other than the run's own letter, never equal
        to the previous letter nor (at the end of the run) to the following
        one. Diversity repair: the latest item carrying the most frequent
        letter gets the first unused letter.
        """
        target = list(letters)
        required = self._required_distinct(len(target))

        for _ in range(self.config.max_rebalance_iterations):
            run = self._find_long_run(target)
            if run is not None:
                start, end = run
                run_letter = target[start]
                for position in range(start + self.config.max_run, end):
                    exclude = {run_letter, target[position - 1]}
                    if position == end - 1 and end < len(target):
                        exclude.add(target[end])
                    target[position] = self._least_used(target, position, exclude)
                continue

            used = set(target)
            if len(used) < required:
                counts = Counter(target)
                most_frequent = min(LETTERS, key=lambda letter: (-counts[letter], letter))
                unused = next(letter for letter in LETTERS if letter not in used)
                position = max(i for i, letter in enumerate(target) if letter == most_frequent)
                target[position] = unused
                continue

            return target

        logger.warning(
            f"Rebalancing stopped after {self.config.max_rebalance_iterations} iterations: "
            f"{'; '.join(self.find_violations(target))}"
        )
        return target

    def rebalance(self, items: Sequence[CandidateItem]) -> RebalanceResult:
        """
        Rebalance a batch. Compliant batches come back unchanged.

        Item order is preserved; only options and correct letters move.
        """
        letters = [item.correct_letter for item in items]
        target = self.plan(letters)

        result = RebalanceResult(items=[])
        for index, (item, new_letter) in enumerate(zip(items, target)):
            if new_letter == item.correct_letter:
                result.items.append(item)
                continue
            shift = (LETTERS.index(new_letter) - item.correct_index) % len(LETTERS)
            result.items.append(item.rotated(shift))
            result.rotations.append(Rotation(index, item.correct_letter, new_letter, shift))

        if result.rotations:
            logger.info(
                f"Rebalanced {len(result.rotations)} question(s): "
                f"{''.join(letters)} -> {''.join(target)}",
                extra={"extra_fields": {"rotations": len(result.rotations)}},
            )
        return result
