"""Smart guess 服务：按位置加权投票猜测分类。

每条记录的票重 = 距离衰减 × 可信度：

    proximity = 1 / (1 + 距离米数)
    trust = max(0, confidence - error_count) / max(1, confidence)

同分类票重相加，总分最高者胜出。距离没有硬性截断，只有平滑衰减；
多条稍远的同类记录可以压过一条很近的异类记录。
每次查询都全量扫描记录，不维护空间索引。
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import tzinfo

from daytrack.domain.timeline_types import Category, Location, SmartGuess
from daytrack.repositories.smart_guess_repository import SmartGuessStore
from daytrack.services.geo import location_distance, same_day_of_week
from daytrack.services.providers import Clock

logger = logging.getLogger(__name__)

BASELINE_CONFIDENCE = 1


@dataclass(frozen=True, slots=True)
class CategoryScore:
    """单个分类的累计票重。"""

    category: Category
    score: float
    best_guess: SmartGuess
    best_weight: float


class SmartGuessService:
    """Smart guess 业务服务。"""

    def __init__(
        self,
        repository: SmartGuessStore,
        clock: Clock,
        tz: tzinfo | None = None,
        same_weekday_only: bool = False,
    ) -> None:
        self._repository = repository
        self._clock = clock
        self._tz = tz
        self._same_weekday_only = same_weekday_only
        self._write_lock = threading.Lock()

    def predict(self, location: Location) -> Category | None:
        """返回票重最高的分类，无记录或平票时为 None。"""

        winner = self._winner(location)
        return winner.category if winner else None

    def best_guess(self, location: Location) -> SmartGuess | None:
        """胜出分类中票重最高的记录。"""

        winner = self._winner(location)
        return winner.best_guess if winner else None

    def score(self, location: Location) -> list[CategoryScore]:
        """各分类的累计票重，按分数降序。"""

        totals: defaultdict[Category, float] = defaultdict(float)
        best: dict[Category, tuple[SmartGuess, float]] = {}
        for guess in self._candidates(location):
            weight = vote_weight(guess, location)
            totals[guess.category] += weight
            current = best.get(guess.category)
            if current is None or weight > current[1]:
                best[guess.category] = (guess, weight)

        scores = [
            CategoryScore(
                category=category,
                score=total,
                best_guess=best[category][0],
                best_weight=best[category][1],
            )
            for category, total in totals.items()
        ]
        scores.sort(key=lambda item: item.score, reverse=True)
        return scores

    def add(self, category: Category, location: Location) -> SmartGuess:
        with self._write_lock:
            guess = self._repository.create(
                category=category,
                location=location,
                last_used=self._clock.now(),
                confidence=BASELINE_CONFIDENCE,
            )
        logger.info("New SmartGuess %s with category %s created", guess.guess_id, category)
        return guess

    def strike(self, guess_id: int) -> SmartGuess | None:
        """用户纠正了由该记录产生的分类。"""

        with self._write_lock:
            updated = self._repository.update(guess_id, lambda guess: guess.struck())
        if updated is None:
            logger.warning("Tried to strike missing SmartGuess %s", guess_id)
            return None
        logger.info(
            "SmartGuess %s struck (errors=%s, confidence=%s)",
            guess_id,
            updated.error_count,
            updated.confidence,
        )
        return updated

    def reinforce(self, guess_id: int) -> SmartGuess | None:
        """记录被采纳，提升可信度并刷新使用时间。"""

        used_at = self._clock.now()
        with self._write_lock:
            updated = self._repository.update(
                guess_id,
                lambda guess: guess.reinforced(used_at),
            )
        if updated is None:
            logger.warning("Tried to reinforce missing SmartGuess %s", guess_id)
            return None
        return updated

    def get_all(self) -> list[SmartGuess]:
        return self._repository.get_all()

    def _candidates(self, location: Location) -> list[SmartGuess]:
        guesses = self._repository.get_all()
        if not self._same_weekday_only:
            return guesses
        return [
            guess
            for guess in guesses
            if same_day_of_week(guess.location.timestamp, location.timestamp, self._tz)
        ]

    def _winner(self, location: Location) -> CategoryScore | None:
        scores = self.score(location)
        if not scores or scores[0].score <= 0:
            return None
        if len(scores) > 1 and scores[1].score == scores[0].score:
            return None
        return scores[0]


def proximity_weight(distance_m: float) -> float:
    """距离衰减，取值 (0, 1]。"""

    return 1.0 / (1.0 + max(distance_m, 0.0))


def trust_weight(guess: SmartGuess) -> float:
    """可信度，错误次数不少于确认次数时为 0。"""

    return max(0, guess.confidence - guess.error_count) / max(1, guess.confidence)


def vote_weight(guess: SmartGuess, location: Location) -> float:
    return proximity_weight(location_distance(guess.location, location)) * trust_weight(guess)
