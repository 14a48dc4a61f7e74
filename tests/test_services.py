#!/usr/bin/env python3
"""
Unit tests for the app services: game catalog and registration workflow.

Run with:
    python -m pytest tests/test_services.py
"""
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError, OperationalError

from helpers import GAMES, ServicesMixin, registration

from avurudu.errors import (ConflictError, ErrorKind, InvalidInputError,
                            NotFoundError, StoreError)
from avurudu.repositories.participant_repository import ParticipantRepository


def _game_id(service, name):
    return service.get_game_by_name(name).id


# ===========================================================================
# GameService — reads
# ===========================================================================

class TestListGames(ServicesMixin):

    def test_sorted_by_name(self):
        names = [g.name for g in self.games.list_games()]
        self.assertEqual(names, ['Pot Breaking', 'Tug of War'])

    def test_empty_catalog_returns_empty_list(self):
        for game in self.games.list_games():
            self.games.delete_game(game.id)
        self.assertEqual(self.games.list_games(), [])

    def test_rows_carry_metadata_and_timestamps(self):
        game = self.games.get_game_by_name('Tug of War')
        self.assertEqual(game.game_zone, 'Zone F')
        self.assertEqual(game.pre_registration, 'Y')
        self.assertIsNotNone(game.created_at)
        self.assertIsNotNone(game.updated_at)

    def test_null_columns_read_as_defaults(self):
        self._execute("UPDATE games SET age_limit = NULL, game_zone = NULL "
                      "WHERE name = 'Pot Breaking'")
        game = self.games.get_game_by_name('Pot Breaking')
        self.assertEqual(game.age_limit, 'All Ages')
        self.assertEqual(game.game_zone, '')


class TestGetGame(ServicesMixin):

    def test_get_by_id(self):
        game_id = _game_id(self.games, 'Tug of War')
        self.assertEqual(self.games.get_game(game_id).name, 'Tug of War')

    def test_unknown_id_raises_not_found(self):
        with self.assertRaises(NotFoundError) as ctx:
            self.games.get_game(9999)
        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND)

    def test_unknown_name_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            self.games.get_game_by_name('Nonexistent Game')

    def test_to_dict_shape(self):
        data = self.games.get_game_by_name('Tug of War').to_dict()
        self.assertEqual(set(data), {'id', 'name', 'age_limit', 'pre_registration',
                                     'game_zone', 'game_time', 'created_at', 'updated_at'})


# ===========================================================================
# GameService — create
# ===========================================================================

class TestCreateGame(ServicesMixin):

    def test_defaults_applied(self):
        game = self.games.create_game({'name': 'Bun Eating'})
        self.assertIsNotNone(game.id)
        self.assertEqual(game.age_limit, 'All Ages')
        self.assertEqual(game.pre_registration, 'N')
        self.assertEqual(game.game_zone, '')
        self.assertEqual(game.game_time, '')
        self.assertIsNotNone(game.created_at)

    def test_all_fields_stored(self):
        game = self.games.create_game({'name': 'Greasy Pole', 'age_limit': 'Adult (Over 16)',
                                       'pre_registration': 'y', 'game_zone': 'Zone D',
                                       'game_time': '1:00 PM'})
        stored = self.games.get_game(game.id)
        self.assertEqual(stored.age_limit, 'Adult (Over 16)')
        self.assertEqual(stored.pre_registration, 'Y')
        self.assertEqual(stored.game_zone, 'Zone D')
        self.assertEqual(stored.game_time, '1:00 PM')

    def test_boolean_pre_registration(self):
        self.assertEqual(self.games.create_game(
            {'name': 'A', 'pre_registration': True}).pre_registration, 'Y')
        self.assertEqual(self.games.create_game(
            {'name': 'B', 'pre_registration': False}).pre_registration, 'N')

    def test_invalid_pre_registration_rejected(self):
        with self.assertRaises(InvalidInputError):
            self.games.create_game({'name': 'C', 'pre_registration': 'maybe'})

    def test_missing_name_rejected(self):
        for fields in ({}, {'name': ''}, {'name': '   '}, {'name': None}):
            with self.assertRaises(InvalidInputError):
                self.games.create_game(fields)
        self.assertEqual(len(self.games.list_games()), 2)

    def test_duplicate_name_is_conflict(self):
        with self.assertRaises(ConflictError) as ctx:
            self.games.create_game({'name': 'Tug of War'})
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(len(self.games.list_games()), 2)

    def test_name_match_is_case_sensitive(self):
        self.games.create_game({'name': 'tug of war'})
        self.assertEqual(len(self.games.list_games()), 3)

    def test_unique_index_violation_is_conflict(self):
        # Simulate a concurrent insert slipping past the pre-check.
        with patch.object(self.games._repo, 'find_by_name', return_value=None):
            with self.assertRaises(ConflictError):
                self.games.create_game({'name': 'Tug of War'})
        self.assertEqual(self._count('games'), 2)


# ===========================================================================
# GameService — update
# ===========================================================================

class TestUpdateGame(ServicesMixin):

    def test_partial_update_changes_only_zone(self):
        before = self.games.get_game_by_name('Tug of War')
        later = datetime(2030, 1, 1, tzinfo=timezone.utc)
        with patch('avurudu.repositories.game_repository.utcnow', return_value=later):
            after = self.games.update_game(before.id, {'game_zone': 'Zone X'})
        self.assertEqual(after.game_zone, 'Zone X')
        self.assertEqual(after.name, before.name)
        self.assertEqual(after.age_limit, before.age_limit)
        self.assertEqual(after.pre_registration, before.pre_registration)
        self.assertEqual(after.game_time, before.game_time)
        self.assertEqual(after.updated_at, later)
        self.assertIs(after.updated_at.tzinfo, timezone.utc)
        self.assertEqual(after.created_at, before.created_at)

    def test_rename(self):
        game_id = _game_id(self.games, 'Tug of War')
        self.assertEqual(self.games.update_game(game_id, {'name': 'Kamba Adeema'}).name,
                         'Kamba Adeema')

    def test_rename_to_same_name_is_allowed(self):
        game_id = _game_id(self.games, 'Tug of War')
        self.assertEqual(self.games.update_game(game_id, {'name': 'Tug of War'}).name,
                         'Tug of War')

    def test_rename_collision_is_conflict(self):
        game_id = _game_id(self.games, 'Tug of War')
        with self.assertRaises(ConflictError):
            self.games.update_game(game_id, {'name': 'Pot Breaking'})
        self.assertEqual(self.games.get_game(game_id).name, 'Tug of War')

    def test_no_fields_rejected(self):
        game_id = _game_id(self.games, 'Tug of War')
        for fields in ({}, {'name': None}, {'unknown': 'x'}):
            with self.assertRaises(InvalidInputError):
                self.games.update_game(game_id, fields)

    def test_blank_name_rejected(self):
        game_id = _game_id(self.games, 'Tug of War')
        with self.assertRaises(InvalidInputError):
            self.games.update_game(game_id, {'name': ' '})

    def test_unknown_id_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.games.update_game(9999, {'game_zone': 'Zone X'})


# ===========================================================================
# GameService — delete
# ===========================================================================

class TestDeleteGame(ServicesMixin):

    def test_delete_unreferenced_game(self):
        game_id = _game_id(self.games, 'Pot Breaking')
        result = self.games.delete_game(game_id)
        self.assertEqual(result['id'], game_id)
        self.assertEqual([g.name for g in self.games.list_games()], ['Tug of War'])

    def test_unknown_id_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.games.delete_game(9999)

    def test_referenced_game_is_conflict(self):
        self.registrations.register_participant(registration())
        game_id = _game_id(self.games, 'Tug of War')
        with self.assertRaises(ConflictError) as ctx:
            self.games.delete_game(game_id)
        self.assertEqual(ctx.exception.details['participant_count'], 1)
        self.assertIn('associated with 1 participants', ctx.exception.message)
        self.assertEqual(self.games.get_game(game_id).name, 'Tug of War')
        self.assertEqual(self._count('participant_games'), 1)

    def test_registration_after_count_blocks_delete(self):
        game_id = _game_id(self.games, 'Pot Breaking')
        repo = self.games._repo
        count_in_session = repo.count_participants
        calls = []

        def count_then_register(db, gid):
            count = count_in_session(db, gid)
            if not calls:
                # Another client registers between the guard and the delete.
                self.registrations.register_participant(
                    registration(first='Bob', games=('Pot Breaking',)))
            calls.append(count)
            return count

        with patch.object(repo, 'count_participants', side_effect=count_then_register):
            with self.assertRaises(ConflictError) as ctx:
                self.games.delete_game(game_id)
        self.assertEqual(calls[0], 0)
        self.assertEqual(ctx.exception.details['participant_count'], 1)
        self.assertEqual(self.games.get_game(game_id).name, 'Pot Breaking')
        bob = self.registrations.list_participants()[0]
        self.assertEqual(bob.first_name, 'Bob')
        self.assertEqual(bob.games, ['Pot Breaking'])
        self.assertEqual(self._count('participant_games'), 1)

    def test_foreign_key_refuses_deleting_referenced_game(self):
        self.registrations.register_participant(registration())
        with self.assertRaises(IntegrityError):
            self._execute("DELETE FROM games WHERE name = 'Tug of War'")
        self.assertEqual(self._count('participant_games'), 1)

    def test_count_participants(self):
        game_id = _game_id(self.games, 'Tug of War')
        self.assertEqual(self.games.count_participants(game_id), 0)
        self.registrations.register_participant(registration())
        self.registrations.register_participant(registration(first='Bob'))
        self.assertEqual(self.games.count_participants(game_id), 2)

    def test_count_participants_unknown_game(self):
        with self.assertRaises(NotFoundError):
            self.games.count_participants(9999)


# ===========================================================================
# RegistrationService — validation
# ===========================================================================

class TestRegistrationValidation(ServicesMixin):

    def _assert_rejected(self, payload):
        with self.assertRaises(InvalidInputError):
            self.registrations.register_participant(payload)
        self.assertEqual(self._count('participants'), 0)
        self.assertEqual(self._count('participant_games'), 0)

    def test_missing_fields(self):
        for key in ('firstName', 'lastName', 'contactNumber', 'ageGroup'):
            payload = registration()
            del payload[key]
            self._assert_rejected(payload)

    def test_blank_field(self):
        self._assert_rejected(registration(first='  '))

    def test_missing_fields_listed_in_details(self):
        payload = registration()
        del payload['lastName']
        del payload['ageGroup']
        with self.assertRaises(InvalidInputError) as ctx:
            self.registrations.register_participant(payload)
        self.assertEqual(ctx.exception.details['missing'], ['lastName', 'ageGroup'])

    def test_empty_selection(self):
        self._assert_rejected(registration(games=()))

    def test_selection_must_be_a_list(self):
        payload = registration()
        payload['selectedGames'] = 'Tug of War'
        self._assert_rejected(payload)

    def test_blank_game_name(self):
        self._assert_rejected(registration(games=('Tug of War', '')))


# ===========================================================================
# RegistrationService — workflow
# ===========================================================================

class TestRegisterParticipant(ServicesMixin):

    def test_register_and_list(self):
        result = self.registrations.register_participant(registration())
        self.assertIsNotNone(result['id'])
        self.assertEqual(result['selectedGames'], ['Tug of War'])
        self.assertEqual(result['firstName'], 'Alice')
        self.assertIn('registrationDate', result)

        participants = self.registrations.list_participants()
        self.assertEqual(len(participants), 1)
        self.assertEqual(participants[0].id, result['id'])
        self.assertEqual(participants[0].games, ['Tug of War'])

    def test_round_trip_multiple_games(self):
        self.registrations.register_participant(
            registration(games=('Tug of War', 'Pot Breaking')))
        participant = self.registrations.list_participants()[0]
        self.assertEqual(set(participant.games), {'Tug of War', 'Pot Breaking'})

    def test_unknown_game_writes_nothing(self):
        with self.assertRaises(NotFoundError) as ctx:
            self.registrations.register_participant(
                registration(games=('Tug of War', 'Nonexistent Game')))
        self.assertEqual(ctx.exception.details['missing'], ['Nonexistent Game'])
        self.assertEqual(self.registrations.list_participants(), [])
        self.assertEqual(self._count('participants'), 0)
        self.assertEqual(self._count('participant_games'), 0)

    def test_association_failure_rolls_back_participant(self):
        error = IntegrityError('INSERT INTO participant_games', {}, Exception('duplicate'))
        with patch.object(ParticipantRepository, 'add_games', side_effect=error):
            with self.assertRaises(ConflictError):
                self.registrations.register_participant(registration())
        self.assertEqual(self._count('participants'), 0)
        self.assertEqual(self._count('participant_games'), 0)

    def test_store_failure_rolls_back_and_is_store_error(self):
        error = OperationalError('INSERT INTO participant_games', {}, Exception('disk I/O'))
        with patch.object(ParticipantRepository, 'add_games', side_effect=error):
            with self.assertRaises(StoreError) as ctx:
                self.registrations.register_participant(registration())
        self.assertEqual(ctx.exception.kind, ErrorKind.STORE)
        self.assertEqual(ctx.exception.operation, 'register_participant')
        self.assertEqual(ctx.exception.entity, 'participant')
        self.assertEqual(self._count('participants'), 0)

    def test_failed_commit_is_tagged_with_operation(self):
        error = OperationalError('COMMIT', {}, Exception('database is locked'))
        with patch('sqlalchemy.orm.Session.commit', side_effect=error):
            with self.assertRaises(StoreError) as ctx:
                self.registrations.register_participant(registration())
        self.assertEqual(ctx.exception.operation, 'register_participant')
        self.assertEqual(ctx.exception.entity, 'participant')
        self.assertEqual(self._count('participants'), 0)

    def test_registration_date_is_utc_and_matches_listing(self):
        result = self.registrations.register_participant(registration())
        participant = self.registrations.list_participants()[0]
        self.assertIs(participant.registration_date.tzinfo, timezone.utc)
        self.assertEqual(participant.to_dict()['registrationDate'], result['registrationDate'])
        game = self.games.get_game_by_name('Tug of War')
        self.assertIs(game.created_at.tzinfo, timezone.utc)
        self.assertIs(game.updated_at.tzinfo, timezone.utc)

    def test_failed_attempt_leaves_earlier_registrations(self):
        self.registrations.register_participant(registration())
        with self.assertRaises(NotFoundError):
            self.registrations.register_participant(
                registration(first='Bob', games=('Nonexistent Game',)))
        self.assertEqual([p.first_name for p in self.registrations.list_participants()],
                         ['Alice'])
        self.assertEqual(self._count('participant_games'), 1)

    def test_duplicate_selection_collapses(self):
        result = self.registrations.register_participant(
            registration(games=('Tug of War', 'Tug of War')))
        self.assertEqual(result['selectedGames'], ['Tug of War', 'Tug of War'])
        self.assertEqual(self._count('participant_games'), 1)

    def test_age_group_not_enforced_against_age_limit(self):
        self.games.update_game(_game_id(self.games, 'Tug of War'),
                               {'age_limit': 'Adult (Over 16)'})
        self.registrations.register_participant(registration())
        self.assertEqual(self.registrations.count(), 1)


# ===========================================================================
# RegistrationService — listing and deletion
# ===========================================================================

class TestListAndDeleteParticipants(ServicesMixin):

    def test_empty_listing(self):
        self.assertEqual(self.registrations.list_participants(), [])

    def test_newest_first(self):
        self.registrations.register_participant(registration(first='Alice'))
        self.registrations.register_participant(registration(first='Bob'))
        names = [p.first_name for p in self.registrations.list_participants()]
        self.assertEqual(names, ['Bob', 'Alice'])

    def test_participant_without_links_has_empty_games(self):
        result = self.registrations.register_participant(registration())
        self._execute("DELETE FROM participant_games")
        participant = self.registrations.get_participant(result['id'])
        self.assertEqual(participant.games, [])

    def test_to_dict_is_camel_case(self):
        self.registrations.register_participant(registration())
        data = self.registrations.list_participants()[0].to_dict()
        self.assertEqual(data['firstName'], 'Alice')
        self.assertEqual(data['contactNumber'], '0211234567')
        self.assertEqual(data['games'], ['Tug of War'])

    def test_get_participant_not_found(self):
        with self.assertRaises(NotFoundError):
            self.registrations.get_participant(9999)

    def test_delete_cascades_only_own_rows(self):
        alice = self.registrations.register_participant(
            registration(games=('Tug of War', 'Pot Breaking')))
        bob = self.registrations.register_participant(registration(first='Bob'))

        result = self.registrations.delete_participant(alice['id'])
        self.assertEqual(result['id'], alice['id'])
        remaining = self.registrations.list_participants()
        self.assertEqual([p.id for p in remaining], [bob['id']])
        self.assertEqual(remaining[0].games, ['Tug of War'])
        self.assertEqual(self._count('participant_games'), 1)

    def test_delete_unknown_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.registrations.delete_participant(9999)


# ===========================================================================
# End-to-end scenario
# ===========================================================================

class TestRegistrationScenario(ServicesMixin):

    def test_full_scenario(self):
        alice = self.registrations.register_participant(registration())
        self.assertEqual(self.registrations.list_participants()[0].games, ['Tug of War'])

        with self.assertRaises(NotFoundError):
            self.registrations.register_participant(
                registration(first='Eve', games=('Tug of War', 'Nonexistent Game')))
        self.assertEqual(len(self.registrations.list_participants()), 1)

        with self.assertRaises(ConflictError):
            self.games.create_game({'name': 'Tug of War'})
        self.assertEqual(len(self.games.list_games()), len(GAMES))

        tug_id = _game_id(self.games, 'Tug of War')
        with self.assertRaises(ConflictError) as ctx:
            self.games.delete_game(tug_id)
        self.assertEqual(ctx.exception.details['participant_count'], 1)

        self.registrations.delete_participant(alice['id'])
        self.assertEqual(self.registrations.list_participants(), [])
        self.assertEqual(self.games.count_participants(tug_id), 0)
        self.games.delete_game(tug_id)
        self.assertEqual([g.name for g in self.games.list_games()], ['Pot Breaking'])


if __name__ == '__main__':
    unittest.main()
