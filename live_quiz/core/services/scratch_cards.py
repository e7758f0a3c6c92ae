"""Scratch card giveaways.

A giveaway collects participants while it is waiting. Generating the cards
builds one entry per prize unit, pads the list with blanks up to the number
of participants, shuffles it once and deals it out in join order. Prize
units beyond the participant count are never dealt. Generation happens at
most once and activates the giveaway; each card can then be scratched once.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Callable, Iterable, TypeVar
from uuid import uuid4

from live_quiz.constants.session_constants import STORE_RETRY_ATTEMPTS
from live_quiz.core import schema
from live_quiz.core.errors import (
    InvalidSessionStateError,
    ParticipantNotFoundError,
    ScratchCardNotFoundError,
    SessionNotFoundError,
)
from live_quiz.core.models import (
    Prize,
    ScratchCard,
    ScratchParticipant,
    ScratchSession,
    SessionStatus,
    utc_now,
)
from live_quiz.core.services.join_codes import JoinCodeGenerator, normalize_join_code
from live_quiz.core.services.lobby_manager import normalize_display_name
from live_quiz.core.store import DocumentStore
from live_quiz.utils.retry import call_with_retries

T = TypeVar("T")

logger = logging.getLogger(__name__)

_OPEN_STATUSES = frozenset({SessionStatus.WAITING.value, SessionStatus.ACTIVE.value})


@dataclass(frozen=True, slots=True)
class PrizeSpec:
    name: str
    quantity: int = 1
    value: str = ""
    description: str = ""


@dataclass(frozen=True, slots=True)
class Winner:
    participant_id: str
    participant_name: str
    prize_id: str
    prize_name: str
    prize_value: str
    card_number: int
    scratched_at: datetime | None


@dataclass(frozen=True, slots=True)
class ScratchResults:
    session: ScratchSession
    prizes: tuple[Prize, ...]
    cards: tuple[ScratchCard, ...]
    winners: tuple[Winner, ...]

    @property
    def total_prize_units(self) -> int:
        return sum(prize.quantity for prize in self.prizes)

    @property
    def scratched_count(self) -> int:
        return sum(1 for card in self.cards if card.scratched)


def build_prize_pool(prizes: Iterable[Prize], participant_count: int) -> list[str | None]:
    """One entry per prize unit, padded with ``None`` up to ``participant_count``."""
    pool: list[str | None] = []
    for prize in prizes:
        pool.extend([prize.id] * prize.quantity)
    pool.extend([None] * max(0, participant_count - len(pool)))
    return pool


class ScratchCardService:
    """Runs scratch card giveaways against the document store."""

    def __init__(
        self,
        store: DocumentStore,
        rng: random.Random | None = None,
        retry_attempts: int = STORE_RETRY_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._rng = rng or random.Random()
        self._retry_attempts = retry_attempts
        self._clock = clock
        self._lock = Lock()
        self._join_codes = JoinCodeGenerator(self._is_code_in_use, rng=rng)

    # --- Setup ---

    def create_session(
        self,
        title: str,
        prizes: Iterable[PrizeSpec],
        description: str = "",
        owner_id: str | None = None,
        now: datetime | None = None,
    ) -> ScratchSession:
        cleaned_title = title.strip()
        if not cleaned_title:
            raise ValueError("Giveaway title must not be empty.")
        cleaned = [self._validate_prize(prize) for prize in prizes]

        with self._lock:
            session = ScratchSession(
                id=uuid4().hex,
                join_code=self._join_codes.generate(),
                title=cleaned_title,
                description=description.strip(),
                owner_id=owner_id,
                created_at=now or self._clock(),
            )
            self._save_session(session, create=True)
            for entry in cleaned:
                prize = Prize(
                    id=uuid4().hex,
                    session_id=session.id,
                    name=entry.name,
                    quantity=entry.quantity,
                    value=entry.value,
                    description=entry.description,
                )
                record = schema.prize_to_record(prize)
                self._call(lambda: self._store.add(schema.PRIZES, record, record_id=prize.id), "add prize")
        logger.info("Giveaway %s created with %d prize(s) (code %s)", session.id, len(cleaned), session.join_code)
        return session

    def get_session(self, session_id: str) -> ScratchSession:
        record = self._call(lambda: self._store.get(schema.SCRATCH_SESSIONS, session_id), "load giveaway")
        if record is None:
            raise SessionNotFoundError(f"Giveaway {session_id} was not found.")
        return schema.scratch_session_from_record(record)

    def find_session_by_code(self, join_code: str) -> ScratchSession:
        session = self._find_open_by_code(normalize_join_code(join_code))
        if session is None:
            raise SessionNotFoundError("Session not found. Check the code and try again.")
        return session

    def get_prizes(self, session_id: str) -> list[Prize]:
        records = self._call(
            lambda: self._store.query(schema.PRIZES, where={"session_id": session_id}),
            "list prizes",
        )
        return [schema.prize_from_record(r) for r in records]

    # --- Participants ---

    def join_session(
        self,
        join_code: str,
        display_name: str,
        email: str | None = None,
        now: datetime | None = None,
    ) -> ScratchParticipant:
        name = normalize_display_name(display_name)
        if not name:
            raise ValueError("Please enter your name to join.")
        with self._lock:
            session = self._find_open_by_code(normalize_join_code(join_code))
            if session is None:
                raise SessionNotFoundError("Session not found. Check the code and try again.")
            wanted = name.casefold()
            existing = next((p for p in self.get_participants(session.id) if p.name.casefold() == wanted), None)
            if existing is not None:
                return existing
            if session.status is not SessionStatus.WAITING:
                raise InvalidSessionStateError("Cards have already been dealt for this giveaway.")
            participant = ScratchParticipant(
                id=uuid4().hex,
                session_id=session.id,
                name=name,
                email=(email or "").strip() or None,
                joined_at=now or self._clock(),
            )
            record = schema.scratch_participant_to_record(participant)
            self._call(
                lambda: self._store.add(schema.SCRATCH_PARTICIPANTS, record, record_id=participant.id),
                "join giveaway",
            )
        logger.info("Participant %s joined giveaway %s", participant.id, session.id)
        return participant

    def get_participants(self, session_id: str) -> list[ScratchParticipant]:
        records = self._call(
            lambda: self._store.query(
                schema.SCRATCH_PARTICIPANTS, where={"session_id": session_id}, order_by="joined_at"
            ),
            "list giveaway participants",
        )
        return [schema.scratch_participant_from_record(r) for r in records]

    # --- Cards ---

    def generate_cards(self, session_id: str, now: datetime | None = None) -> list[ScratchCard]:
        """Deal one card per participant and activate the giveaway."""
        now = now or self._clock()
        with self._lock:
            session = self.get_session(session_id)
            if session.status is not SessionStatus.WAITING or self.get_cards(session_id):
                raise InvalidSessionStateError("Scratch cards have already been generated for this giveaway.")
            participants = self.get_participants(session_id)
            if not participants:
                raise ValueError("At least one participant must join before cards are generated.")

            pool = build_prize_pool(self.get_prizes(session_id), len(participants))
            self._rng.shuffle(pool)
            if len(pool) > len(participants):
                logger.info(
                    "Giveaway %s has %d more prize unit(s) than participants; they stay undealt",
                    session_id,
                    len(pool) - len(participants),
                )

            cards: list[ScratchCard] = []
            for index, participant in enumerate(participants):
                card = ScratchCard(
                    id=uuid4().hex,
                    session_id=session_id,
                    participant_id=participant.id,
                    card_number=index + 1,
                    prize_id=pool[index],
                    created_at=now,
                )
                record = schema.scratch_card_to_record(card)
                self._call(lambda: self._store.add(schema.SCRATCH_CARDS, record, record_id=card.id), "deal card")
                cards.append(card)

            session.status = SessionStatus.ACTIVE
            session.started_at = now
            session.total_cards = len(cards)
            self._save_session(session)
        logger.info("Dealt %d scratch card(s) for giveaway %s", len(cards), session_id)
        return cards

    def get_cards(self, session_id: str) -> list[ScratchCard]:
        records = self._call(
            lambda: self._store.query(schema.SCRATCH_CARDS, where={"session_id": session_id}, order_by="card_number"),
            "list cards",
        )
        return [schema.scratch_card_from_record(r) for r in records]

    def get_card(self, card_id: str) -> ScratchCard:
        record = self._call(lambda: self._store.get(schema.SCRATCH_CARDS, card_id), "load card")
        if record is None:
            raise ScratchCardNotFoundError(f"Scratch card {card_id} was not found.")
        return schema.scratch_card_from_record(record)

    def card_for_participant(self, session_id: str, participant_id: str) -> ScratchCard:
        records = self._call(
            lambda: self._store.query(
                schema.SCRATCH_CARDS, where={"session_id": session_id, "participant_id": participant_id}
            ),
            "find participant card",
        )
        if not records:
            raise ParticipantNotFoundError("No scratch card has been dealt to this participant.")
        return schema.scratch_card_from_record(records[0])

    def scratch(self, card_id: str, now: datetime | None = None) -> ScratchCard:
        """Reveal a card. Scratching an already revealed card returns it unchanged."""
        with self._lock:
            card = self.get_card(card_id)
            if card.scratched:
                return card
            session = self.get_session(card.session_id)
            if session.status is not SessionStatus.ACTIVE:
                raise InvalidSessionStateError("This giveaway is not accepting scratches.")
            card.scratched = True
            card.scratched_at = now or self._clock()
            changes = {"scratched": True, "scratched_at": schema.format_instant(card.scratched_at)}
            self._call(lambda: self._store.update(schema.SCRATCH_CARDS, card_id, changes), "scratch card")
        logger.info("Card %s scratched (%s)", card_id, "winner" if card.is_winner else "no prize")
        return card

    # --- Lifecycle and results ---

    def end_session(self, session_id: str, now: datetime | None = None) -> ScratchSession:
        with self._lock:
            session = self.get_session(session_id)
            if session.status is SessionStatus.COMPLETED:
                return session
            session.status = SessionStatus.COMPLETED
            session.ended_at = now or self._clock()
            self._save_session(session)
        logger.info("Giveaway %s completed", session_id)
        return session

    def get_results(self, session_id: str) -> ScratchResults:
        """Winners are participants who scratched a card carrying a prize."""
        session = self.get_session(session_id)
        prizes = self.get_prizes(session_id)
        cards = self.get_cards(session_id)
        participants = {p.id: p for p in self.get_participants(session_id)}
        prizes_by_id = {p.id: p for p in prizes}

        winners = []
        for card in cards:
            if not (card.scratched and card.prize_id):
                continue
            participant = participants.get(card.participant_id)
            prize = prizes_by_id.get(card.prize_id)
            if participant is None or prize is None:
                continue
            winners.append(
                Winner(
                    participant_id=participant.id,
                    participant_name=participant.name,
                    prize_id=prize.id,
                    prize_name=prize.name,
                    prize_value=prize.value,
                    card_number=card.card_number,
                    scratched_at=card.scratched_at,
                )
            )
        return ScratchResults(session=session, prizes=tuple(prizes), cards=tuple(cards), winners=tuple(winners))

    # --- Internals ---

    @staticmethod
    def _validate_prize(prize: PrizeSpec) -> PrizeSpec:
        name = prize.name.strip()
        if not name:
            raise ValueError("Prize name must not be empty.")
        if prize.quantity <= 0:
            raise ValueError("Prize quantity must be a positive integer.")
        return PrizeSpec(
            name=name,
            quantity=prize.quantity,
            value=prize.value.strip(),
            description=prize.description.strip(),
        )

    def _find_open_by_code(self, join_code: str) -> ScratchSession | None:
        records = self._call(
            lambda: self._store.query(
                schema.SCRATCH_SESSIONS, where={"join_code": join_code, "status": _OPEN_STATUSES}
            ),
            "find giveaway by code",
        )
        return schema.scratch_session_from_record(records[0]) if records else None

    def _is_code_in_use(self, join_code: str) -> bool:
        return self._find_open_by_code(join_code) is not None

    def _save_session(self, session: ScratchSession, create: bool = False) -> None:
        record = schema.scratch_session_to_record(session)
        if create:
            self._call(lambda: self._store.add(schema.SCRATCH_SESSIONS, record, record_id=session.id), "create giveaway")
        else:
            self._call(lambda: self._store.set(schema.SCRATCH_SESSIONS, session.id, record), "save giveaway")

    def _call(self, operation: Callable[[], T], description: str) -> T:
        return call_with_retries(operation, description=description, attempts=self._retry_attempts)
