"""Registration workflow and participant administration."""
import logging
from typing import Any, Dict, List, Mapping

from sqlalchemy.exc import IntegrityError

from ..database import Store
from ..errors import ConflictError, InvalidInputError, NotFoundError
from ..models import Participant
from ..repositories.game_repository import GameRepository
from ..repositories.participant_repository import ParticipantRepository

logger = logging.getLogger('avurudu.services.registration')

REQUIRED_FIELDS = (
    ('firstName', 'First name'),
    ('lastName', 'Last name'),
    ('contactNumber', 'Contact number'),
    ('ageGroup', 'Age group'),
)


def validate_registration(payload: Mapping[str, Any]) -> List[str]:
    """Check a registration payload and return its selected game names.

    Contact-number format and the age-group enumeration are the web layer's
    concern; here every field only has to be present and non-blank.

    Raises:
        InvalidInputError: A field is missing or the game list is empty.
    """
    missing = [key for key, _ in REQUIRED_FIELDS
               if not isinstance(payload.get(key), str) or not payload[key].strip()]
    if missing:
        raise InvalidInputError("Missing required fields", operation='register_participant',
                                entity='participant', details={'missing': missing})

    selected = payload.get('selectedGames')
    if not isinstance(selected, (list, tuple)) or len(selected) == 0:
        raise InvalidInputError("At least one game must be selected",
                                operation='register_participant', entity='participant',
                                details={'field': 'selectedGames'})
    if any(not isinstance(name, str) or not name.strip() for name in selected):
        raise InvalidInputError("Selected game names must be non-empty text",
                                operation='register_participant', entity='participant',
                                details={'field': 'selectedGames'})
    return list(selected)


class RegistrationService:
    """Registers participants for games and manages existing registrations.

    A registration is all-or-nothing: the participant row and every one of
    its ``participant_games`` links are written in a single transaction, and
    every selected game name is resolved before the first write.  Any failure
    leaves the database exactly as it was.
    """

    def __init__(self, store: Store,
                 participants: ParticipantRepository = None,
                 games: GameRepository = None) -> None:
        self._store = store
        self._participants = participants or ParticipantRepository(store)
        self._games = games or GameRepository(store)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def register_participant(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Register a participant for the games named in ``selectedGames``.

        Args:
            payload: ``firstName``, ``lastName``, ``contactNumber``,
                ``ageGroup`` and a non-empty ``selectedGames`` list of game
                names.

        Returns:
            The submitted payload merged with the new ``id`` and
            ``registrationDate``.  ``selectedGames`` is echoed as submitted.

        Raises:
            InvalidInputError: The payload fails validation (nothing written).
            NotFoundError:     A selected game does not exist; the names are
                in ``details['missing']`` (nothing written).
            ConflictError:     An association could not be stored (rolled back).
        """
        selected = validate_registration(payload)
        names = [name.strip() for name in selected]

        with self._store.session_scope('register_participant', 'participant') as db:
            resolved = self._games.resolve_ids(db, names)
            missing = sorted({name for name in names if name not in resolved})
            if missing:
                logger.warning("Registration rejected, unknown games: %s", ', '.join(missing))
                raise NotFoundError("One or more selected games were not found",
                                    operation='register_participant', entity='game',
                                    details={'missing': missing})

            record = self._participants.insert(
                db,
                first_name=payload['firstName'].strip(),
                last_name=payload['lastName'].strip(),
                contact_number=payload['contactNumber'].strip(),
                age_group=payload['ageGroup'].strip(),
            )
            game_ids = list(dict.fromkeys(resolved[name] for name in names))
            try:
                self._participants.add_games(db, record.id, game_ids)
            except IntegrityError as e:
                logger.error(f"Error associating games with participant: {e}")
                raise ConflictError("Error associating games with participant",
                                    operation='register_participant',
                                    entity='participant') from e
            participant_id = record.id
            registration_date = record.registration_date

        logger.info(f"Registered participant {participant_id} for {len(game_ids)} games")
        result = dict(payload)
        result['id'] = participant_id
        result['registrationDate'] = registration_date.isoformat()
        return result

    def list_participants(self) -> List[Participant]:
        """Return every participant, newest first, with their game names."""
        with self._store.session_scope('list_participants', 'participant') as db:
            return self._participants.list_with_games(db)

    def get_participant(self, participant_id: int) -> Participant:
        with self._store.session_scope('get_participant', 'participant') as db:
            found = self._participants.list_with_games(db, participant_id=participant_id)
        if not found:
            raise NotFoundError("Participant not found", operation='get_participant',
                                entity='participant', details={'id': participant_id})
        return found[0]

    def delete_participant(self, participant_id: int) -> Dict[str, Any]:
        """Delete a participant together with all of its game links.

        Raises:
            NotFoundError: *participant_id* does not exist.
        """
        with self._store.session_scope('delete_participant', 'participant') as db:
            if not self._participants.exists(db, participant_id):
                raise NotFoundError("Participant not found", operation='delete_participant',
                                    entity='participant', details={'id': participant_id})
            self._participants.delete(db, participant_id)
        logger.info(f"Participant deleted: id={participant_id}")
        return {'id': participant_id, 'message': 'Participant deleted successfully'}

    def count(self) -> int:
        with self._store.session_scope('count', 'participant') as db:
            return self._participants.count(db)
