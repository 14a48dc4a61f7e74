"""Normalized in-memory shapes returned by the services."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class Game:
    """A registerable activity, independent of which columns the table has."""

    id: int
    name: str
    age_limit: str = 'All Ages'
    pre_registration: str = 'N'
    game_zone: str = ''
    game_time: str = ''
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'age_limit': self.age_limit,
            'pre_registration': self.pre_registration,
            'game_zone': self.game_zone,
            'game_time': self.game_time,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class Participant:
    """A registrant together with the names of the games they joined."""

    id: int
    first_name: str
    last_name: str
    contact_number: str
    age_group: str
    registration_date: Optional[datetime] = None
    games: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Return the camelCase shape used by the admin panel."""
        return {
            'id': self.id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'contactNumber': self.contact_number,
            'ageGroup': self.age_group,
            'registrationDate': (self.registration_date.isoformat()
                                 if self.registration_date else None),
            'games': list(self.games),
        }
