"""
Domain service: Option selection for a guessing round.
"""
import logging
from typing import Optional, Sequence

import numpy as np

from arbor.domain.models import Specimen

logger = logging.getLogger(__name__)


class DistractorSelector:
    """
    Builds the option list for a round: the target plus up to two distractors.

    Distractor names are deduplicated before sampling, so two pool entries
    sharing a common name can never produce duplicate labels. Sampling and
    the final ordering are uniform and driven by an injectable numpy
    Generator, which makes tests deterministic with a seed.
    """

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        distractor_count: int = 2,
    ):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.distractor_count = distractor_count

    def select_options(
        self,
        target: Specimen,
        pool: Sequence[Specimen],
    ) -> tuple[str, ...]:
        """
        Select the shuffled option labels for a round.

        Args:
            target: Specimen the player must identify
            pool: Full pool the target belongs to

        Returns:
            Tuple of distinct labels containing the target's common name once
        """
        candidates: list[str] = []
        for specimen in pool:
            name = specimen.common_name
            if specimen.id == target.id or name == target.common_name or name in candidates:
                continue
            candidates.append(name)

        count = min(self.distractor_count, len(candidates))
        if count:
            picks = self.rng.choice(len(candidates), size=count, replace=False)
            distractors = [candidates[int(i)] for i in picks]
        else:
            distractors = []

        labels = [target.common_name, *distractors]
        order = self.rng.permutation(len(labels))
        options = tuple(labels[int(i)] for i in order)
        logger.debug(f"Options for {target.id}: {options}")
        return options
