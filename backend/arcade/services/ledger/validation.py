import math
from typing import Tuple

from arcade.errors import GameUnavailableError, ValidationError
from arcade.settings import COMING_SOON

# Largest value a BigInteger column holds
MAX_STORED_INT = 2 ** 63 - 1


def normalize_wallet_address(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError('Wallet address is required', code='missing_field', field='wallet_address')
    return value.strip().lower()


def validate_wallet_format(wallet_address: str, settings) -> str:
    wallet_address = normalize_wallet_address(wallet_address)
    if not settings.wallet_min_length <= len(wallet_address) <= settings.wallet_max_length:
        raise ValidationError('Invalid wallet address format', code='invalid_wallet', field='wallet_address')
    return wallet_address


def require_known_game(game_type, settings) -> str:
    if not game_type:
        raise ValidationError('Game type is required', code='missing_field', field='game_type')
    if not isinstance(game_type, str) or not settings.is_known(game_type):
        raise ValidationError('Invalid game type', code='invalid_game_type', field='game_type')
    return game_type


def require_playable_game(game_type, settings) -> str:
    game_type = require_known_game(game_type, settings)
    if settings.status_of(game_type) == COMING_SOON:
        raise GameUnavailableError(
            'This game is coming soon and is not yet available for play',
            field='game_type',
        )
    return game_type


def require_count(value, field: str) -> int:
    """Coerce a score/points value to a non-negative int or reject it."""
    if value is None:
        raise ValidationError(f'{field} is required', code='missing_field', field=field)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f'{field} must be a number', code='invalid_number', field=field)
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f'{field} must be a finite number', code='invalid_number', field=field)
    if value < 0:
        raise ValidationError(f'{field} must not be negative', code='invalid_number', field=field)
    if value > MAX_STORED_INT:
        raise ValidationError(f'{field} is too large', code='invalid_number', field=field)
    if value != int(value):
        raise ValidationError(f'{field} must be a whole number', code='invalid_number', field=field)
    return int(value)


def require_metadata(value) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError('game_data must be an object', code='invalid_metadata', field='game_data')
    return value


def _positive_int(value, field: str, default: int) -> int:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a positive integer', code='invalid_pagination', field=field)
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a positive integer', code='invalid_pagination', field=field)
    if parsed < 1:
        raise ValidationError(f'{field} must be a positive integer', code='invalid_pagination', field=field)
    return parsed


def parse_pagination(page, limit, settings) -> Tuple[int, int]:
    page = _positive_int(page, 'page', 1)
    limit = _positive_int(limit, 'limit', settings.default_page_size)
    return page, min(limit, settings.max_page_size)
