"""Smart guess 数据仓储。"""

from __future__ import annotations

import itertools
import threading
from datetime import datetime, tzinfo
from typing import Any, Callable, Protocol

from sqlalchemy import insert, select, update

from daytrack.db.schema import from_unix_micros, smart_guesses, to_unix_micros
from daytrack.db.sqlite_client import SQLiteClient
from daytrack.domain.errors import PersistenceError
from daytrack.domain.timeline_types import Category, Location, SmartGuess, parse_category

SmartGuessMutator = Callable[[SmartGuess], SmartGuess]


class SmartGuessStore(Protocol):
    def get_all(self) -> list[SmartGuess]: ...

    def get(self, guess_id: int) -> SmartGuess | None: ...

    def create(
        self,
        category: Category,
        location: Location,
        last_used: datetime,
        confidence: int = 1,
    ) -> SmartGuess: ...

    def update(self, guess_id: int, mutator: SmartGuessMutator) -> SmartGuess | None: ...


class InMemorySmartGuessRepository:
    """内存 smart guess 仓储。"""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._guesses: dict[int, SmartGuess] = {}
        self._ids = itertools.count(1)

    def get_all(self) -> list[SmartGuess]:
        with self._lock:
            return list(self._guesses.values())

    def get(self, guess_id: int) -> SmartGuess | None:
        with self._lock:
            return self._guesses.get(guess_id)

    def create(
        self,
        category: Category,
        location: Location,
        last_used: datetime,
        confidence: int = 1,
    ) -> SmartGuess:
        with self._lock:
            guess = SmartGuess(
                guess_id=next(self._ids),
                category=category,
                location=location,
                last_used=last_used,
                confidence=confidence,
            )
            self._guesses[guess.guess_id] = guess
            return guess

    def update(self, guess_id: int, mutator: SmartGuessMutator) -> SmartGuess | None:
        with self._lock:
            current = self._guesses.get(guess_id)
            if current is None:
                return None
            updated = mutator(current)
            self._guesses[guess_id] = updated
            return updated


class SQLSmartGuessRepository:
    """基于 SQLite 的 smart guess 仓储。"""

    def __init__(self, client: SQLiteClient, tz: tzinfo) -> None:
        self._client = client
        self._tz = tz

    def get_all(self) -> list[SmartGuess]:
        statement = select(smart_guesses).order_by(smart_guesses.c.id.asc())
        return [self._to_smart_guess(row) for row in self._client.execute(statement)]

    def get(self, guess_id: int) -> SmartGuess | None:
        statement = select(smart_guesses).where(smart_guesses.c.id == guess_id)
        rows = self._client.execute(statement)
        if not rows:
            return None
        return self._to_smart_guess(rows[0])

    def create(
        self,
        category: Category,
        location: Location,
        last_used: datetime,
        confidence: int = 1,
    ) -> SmartGuess:
        values = {
            "category": category,
            "latitude": location.latitude,
            "longitude": location.longitude,
            "location_us": to_unix_micros(location.timestamp),
            "last_used_us": to_unix_micros(last_used),
            "confidence": confidence,
            "error_count": 0,
        }
        with self._client.begin() as connection:
            result = connection.execute(insert(smart_guesses).values(**values))
            primary_key = result.inserted_primary_key
        if not primary_key:
            raise PersistenceError("SQLite did not return an id for the new smart guess.")
        return SmartGuess(
            guess_id=int(primary_key[0]),
            category=category,
            location=location,
            last_used=last_used,
            confidence=confidence,
        )

    def update(self, guess_id: int, mutator: SmartGuessMutator) -> SmartGuess | None:
        """读取、变换并写回单条记录。"""

        with self._client.begin() as connection:
            row = (
                connection.execute(
                    select(smart_guesses).where(smart_guesses.c.id == guess_id)
                )
                .mappings()
                .first()
            )
            if row is None:
                return None
            updated = mutator(self._to_smart_guess(dict(row)))
            connection.execute(
                update(smart_guesses)
                .where(smart_guesses.c.id == guess_id)
                .values(
                    category=updated.category,
                    last_used_us=to_unix_micros(updated.last_used),
                    confidence=updated.confidence,
                    error_count=updated.error_count,
                )
            )
            return updated

    def _to_smart_guess(self, row: dict[str, Any]) -> SmartGuess:
        """行记录转 smart guess。"""

        return SmartGuess(
            guess_id=int(row["id"]),
            category=parse_category(str(row["category"])),
            location=Location(
                latitude=float(row["latitude"]),
                longitude=float(row["longitude"]),
                timestamp=from_unix_micros(row["location_us"], self._tz),
            ),
            last_used=from_unix_micros(row["last_used_us"], self._tz),
            confidence=int(row["confidence"]),
            error_count=int(row["error_count"]),
        )
