"""Repository for participants and their game associations."""
from typing import Iterable, List, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import GameRecord, ParticipantGameRecord, ParticipantRecord, utcnow
from ..models import Participant
from .base import BaseRepository


class ParticipantRepository(BaseRepository):
    """Persists :class:`~avurudu.database.ParticipantRecord` rows and the
    ``participant_games`` links that belong to them.

    Game rows are only ever read here, through a join on ``games.id`` and
    ``games.name``, the two columns every schema version has.
    """

    entity = 'participant'

    def insert(self, db: Session, first_name: str, last_name: str,
               contact_number: str, age_group: str) -> ParticipantRecord:
        """Insert a participant and flush so its id is assigned."""
        record = ParticipantRecord(
            first_name=first_name,
            last_name=last_name,
            contact_number=contact_number,
            age_group=age_group,
            registration_date=utcnow(),
        )
        try:
            db.add(record)
            db.flush()
        except SQLAlchemyError as e:
            raise self._store_error('register', e) from e
        return record

    def add_games(self, db: Session, participant_id: int, game_ids: Iterable[int]) -> int:
        """Link *participant_id* to every id in *game_ids*.

        ``IntegrityError`` (a duplicate pairing or a vanished game) propagates
        so the caller's transaction is rolled back as a whole.
        """
        count = 0
        try:
            for game_id in game_ids:
                db.add(ParticipantGameRecord(participant_id=participant_id, game_id=game_id))
                count += 1
            db.flush()
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            raise self._store_error('register', e) from e
        return count

    def list_with_games(self, db: Session,
                        participant_id: Optional[int] = None) -> List[Participant]:
        """Return participants, newest first, each with its game names.

        Uses an outer join so a participant without resolvable games still
        appears with an empty list.
        """
        query = (
            db.query(ParticipantRecord, GameRecord.name)
            .outerjoin(ParticipantGameRecord,
                       ParticipantGameRecord.participant_id == ParticipantRecord.id)
            .outerjoin(GameRecord, GameRecord.id == ParticipantGameRecord.game_id)
        )
        if participant_id is not None:
            query = query.filter(ParticipantRecord.id == participant_id)
        query = query.order_by(ParticipantRecord.registration_date.desc(),
                               ParticipantRecord.id.desc(),
                               GameRecord.name.asc())
        try:
            rows = query.all()
        except SQLAlchemyError as e:
            raise self._store_error('list', e) from e

        participants = {}
        for record, game_name in rows:
            participant = participants.get(record.id)
            if participant is None:
                participant = Participant(
                    id=record.id,
                    first_name=record.first_name,
                    last_name=record.last_name,
                    contact_number=record.contact_number,
                    age_group=record.age_group,
                    registration_date=record.registration_date,
                )
                participants[record.id] = participant
            if game_name is not None:
                participant.games.append(game_name)
        return list(participants.values())

    def exists(self, db: Session, participant_id: int) -> bool:
        try:
            return db.get(ParticipantRecord, participant_id) is not None
        except SQLAlchemyError as e:
            raise self._store_error('fetch', e) from e

    def delete(self, db: Session, participant_id: int) -> int:
        """Delete the participant and its links; returns participant rows removed."""
        links = ParticipantGameRecord.__table__
        participants = ParticipantRecord.__table__
        try:
            db.execute(delete(links).where(links.c.participant_id == participant_id))
            return db.execute(
                delete(participants).where(participants.c.id == participant_id)).rowcount
        except SQLAlchemyError as e:
            raise self._store_error('delete', e) from e

    def count(self, db: Session) -> int:
        try:
            return db.query(ParticipantRecord).count()
        except SQLAlchemyError as e:
            raise self._store_error('count', e) from e
