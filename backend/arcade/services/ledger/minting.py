import math
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from arcade import db
from arcade.errors import ConflictError, NotFoundError, StoreError, ValidationError
from arcade.models import Player
from .validation import MAX_STORED_INT, normalize_wallet_address


@dataclass
class MintResult:
    minted_amount: int
    converted_units: float
    player: Player


def parse_mint_amount(requested_points) -> int:
    """Floor a requested mint amount, rejecting non-positive and sub-unit requests."""
    amount = requested_points
    # ints stay exact; strings fall back to float parsing only when not integral
    if isinstance(amount, str):
        try:
            amount = int(amount.strip())
        except ValueError:
            try:
                amount = float(amount)
            except ValueError:
                amount = None
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValidationError('Mint amount must be a positive number', code='invalid_amount', field='points')
    if (isinstance(amount, float) and not math.isfinite(amount)) or amount <= 0:
        raise ValidationError('Mint amount must be a positive number', code='invalid_amount', field='points')
    if amount > MAX_STORED_INT:
        raise ValidationError('Mint amount is too large', code='invalid_amount', field='points')
    floored = math.floor(amount)
    if floored <= 0:
        raise ValidationError('Mint amount is too small', code='amount_too_small', field='points')
    return floored


def _load_player(wallet_address):
    return Player.query.filter_by(wallet_address=wallet_address).first()


def _claim_points(wallet_address: str, amount: int) -> bool:
    # Check and increment in one statement; never mints past total_points
    statement = (
        update(Player)
        .where(
            Player.wallet_address == wallet_address,
            Player.minted_points + amount <= Player.total_points,
        )
        .values(minted_points=Player.minted_points + amount)
        .execution_options(synchronize_session=False)
    )
    return bool(db.session.execute(statement).rowcount)


def mint_points(wallet_address, requested_points, *, settings) -> MintResult:
    wallet_address = normalize_wallet_address(wallet_address)
    amount = parse_mint_amount(requested_points)

    player = _load_player(wallet_address)
    if not player:
        raise NotFoundError('Player not found', field='wallet_address')

    available = (player.total_points or 0) - (player.minted_points or 0)
    if available <= 0:
        raise ValidationError('No points available to mint', code='nothing_to_mint', field='points')
    if amount > available:
        raise ValidationError('Mint amount exceeds available points', code='exceeds_available', field='points')

    try:
        claimed = _claim_points(wallet_address, amount)
        if not claimed:
            db.session.rollback()
            current_app.logger.warning(
                f"[mint-conflict] wallet={wallet_address} requested={amount} snapshot_available={available}"
            )
            raise ConflictError(
                'Mint amount exceeds available points after a concurrent update; refresh and retry',
                code='mint_conflict',
                field='points',
            )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(f"[mint-failed] wallet={wallet_address} requested={amount}")
        raise StoreError('Could not mint points') from exc

    player = Player.query.filter_by(wallet_address=wallet_address).one()
    converted = amount / settings.point_rate
    current_app.logger.info(
        f"[mint] wallet={wallet_address} minted={amount} oracles={converted} "
        f"minted_total={player.minted_points} available={player.available_points}"
    )
    return MintResult(minted_amount=amount, converted_units=converted, player=player)
