"""Repository package — expose all concrete repositories from one import."""
from .game_repository import GameRepository
from .participant_repository import ParticipantRepository

__all__ = [
    'GameRepository',
    'ParticipantRepository',
]
