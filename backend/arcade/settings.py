"""Ledger configuration resolved once at startup.

The Flask config is read a single time in ``create_app`` and frozen into a
``LedgerSettings`` instance that services receive explicitly, so nothing in
the ledger reads the process environment while handling a request.
"""

from dataclasses import dataclass
from typing import FrozenSet, Mapping, Tuple


ACTIVE = 'active'
COMING_SOON = 'comingSoon'


@dataclass(frozen=True)
class LedgerSettings:
    game_types: Tuple[str, ...]
    coming_soon: FrozenSet[str]
    point_rate: float
    default_page_size: int = 50
    max_page_size: int = 100
    broadcast_limit: int = 10
    auto_create_players: bool = True
    wallet_min_length: int = 26
    wallet_max_length: int = 62

    @classmethod
    def from_config(cls, config: Mapping) -> 'LedgerSettings':
        game_types = tuple(config.get('GAME_TYPES') or ())
        if not game_types:
            raise ValueError('GAME_TYPES must name at least one game type')
        point_rate = float(config.get('ORACLE_POINT_RATE', 100))
        if not point_rate > 0:
            raise ValueError('ORACLE_POINT_RATE must be a positive number')
        default_page_size = int(config.get('DEFAULT_PAGE_SIZE', 50))
        max_page_size = int(config.get('MAX_PAGE_SIZE', 100))
        if default_page_size < 1 or max_page_size < default_page_size:
            raise ValueError('page sizes must satisfy 1 <= DEFAULT_PAGE_SIZE <= MAX_PAGE_SIZE')
        return cls(
            game_types=game_types,
            coming_soon=frozenset(config.get('COMING_SOON_GAMES') or ()),
            point_rate=point_rate,
            default_page_size=default_page_size,
            max_page_size=max_page_size,
            broadcast_limit=max(1, int(config.get('LEADERBOARD_BROADCAST_LIMIT', 10))),
            auto_create_players=bool(config.get('AUTO_CREATE_PLAYERS', True)),
            wallet_min_length=int(config.get('WALLET_MIN_LENGTH', 26)),
            wallet_max_length=int(config.get('WALLET_MAX_LENGTH', 62)),
        )

    def is_known(self, game_type: str) -> bool:
        return game_type in self.game_types

    def status_of(self, game_type: str) -> str:
        return COMING_SOON if game_type in self.coming_soon else ACTIVE

    def game_statuses(self) -> dict:
        return {game_type: self.status_of(game_type) for game_type in self.game_types}
