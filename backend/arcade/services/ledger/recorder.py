from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from arcade import db
from arcade.errors import ConflictError, NotFoundError, StoreError
from arcade.models import Player, PlayerGameStat, ScoreEntry, utcnow
from .validation import normalize_wallet_address, require_count, require_metadata, require_playable_game


@dataclass
class SubmissionResult:
    entry: ScoreEntry
    player: Player


def _ensure_row(statement, make_row) -> None:
    """Run an atomic UPDATE, inserting the row when it does not exist yet.

    The insert happens inside a SAVEPOINT; losing the insert race to a
    concurrent request means the row now exists and the UPDATE is replayed.
    """
    if db.session.execute(statement).rowcount:
        return
    try:
        with db.session.begin_nested():
            db.session.add(make_row())
    except IntegrityError:
        db.session.execute(statement)


def _credit_player(wallet_address: str, points: int, now, auto_create: bool) -> None:
    statement = (
        update(Player)
        .where(Player.wallet_address == wallet_address)
        .values(total_points=Player.total_points + points, last_played=now)
        .execution_options(synchronize_session=False)
    )
    if not auto_create:
        if not db.session.execute(statement).rowcount:
            raise NotFoundError('Player not found', field='wallet_address')
        return
    _ensure_row(statement, lambda: Player(
        wallet_address=wallet_address,
        total_points=points,
        minted_points=0,
        created_at=now,
        last_played=now,
    ))


def _bump_game_stat(wallet_address: str, game_type: str, score: int) -> None:
    statement = (
        update(PlayerGameStat)
        .where(PlayerGameStat.wallet_address == wallet_address, PlayerGameStat.game_type == game_type)
        .values(
            games_played=PlayerGameStat.games_played + 1,
            high_score=case((PlayerGameStat.high_score < score, score), else_=PlayerGameStat.high_score),
        )
        .execution_options(synchronize_session=False)
    )
    _ensure_row(statement, lambda: PlayerGameStat(
        wallet_address=wallet_address,
        game_type=game_type,
        games_played=1,
        high_score=score,
    ))


def record_score(wallet_address, game_type, score, points, metadata=None, *, settings) -> SubmissionResult:
    """Append a ledger entry and fold it into the player's aggregates.

    Both writes share one transaction. Aggregates are changed only through
    atomic SQL expressions so concurrent submissions for the same wallet
    cannot lose updates.
    """
    wallet_address = normalize_wallet_address(wallet_address)
    game_type = require_playable_game(game_type, settings)
    score = require_count(score, 'score')
    points = require_count(points, 'points')
    metadata = require_metadata(metadata)

    now = utcnow()
    try:
        # The player row is written first so the transaction starts with a write
        _credit_player(wallet_address, points, now, settings.auto_create_players)
        entry = ScoreEntry(
            wallet_address=wallet_address,
            game_type=game_type,
            score=score,
            points=points,
            game_data=metadata,
            played_at=now,
        )
        db.session.add(entry)
        _bump_game_stat(wallet_address, game_type, score)
        db.session.commit()
    except NotFoundError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(f"[score-submit-failed] wallet={wallet_address} game={game_type}")
        raise StoreError('Could not record score') from exc

    player = Player.query.filter_by(wallet_address=wallet_address).one()
    current_app.logger.info(
        f"[score-submit] wallet={wallet_address} game={game_type} score={score} points={points} "
        f"entry={entry.id} total_points={player.total_points}"
    )
    return SubmissionResult(entry=entry, player=player)


def rebuild_player_aggregate(wallet_address) -> Optional[Player]:
    """Recompute a player's aggregates from the ledger and overwrite them.

    Returns None when the wallet has no player record.
    """
    wallet_address = normalize_wallet_address(wallet_address)
    # Write-lock the player row first; concurrent submissions queue behind the rebuild
    locked = db.session.execute(
        update(Player)
        .where(Player.wallet_address == wallet_address)
        .values(total_points=Player.total_points)
        .execution_options(synchronize_session=False)
    ).rowcount
    if not locked:
        db.session.rollback()
        return None
    player = Player.query.filter_by(wallet_address=wallet_address).populate_existing().one()

    total_points, last_played = db.session.query(
        func.coalesce(func.sum(ScoreEntry.points), 0),
        func.max(ScoreEntry.played_at),
    ).filter(ScoreEntry.wallet_address == wallet_address).one()
    per_game = {
        row.game_type: row
        for row in db.session.query(
            ScoreEntry.game_type,
            func.count(ScoreEntry.id).label('games_played'),
            func.max(ScoreEntry.score).label('high_score'),
        ).filter(ScoreEntry.wallet_address == wallet_address).group_by(ScoreEntry.game_type)
    }

    try:
        total_points = int(total_points)
        if player.minted_points > total_points:
            db.session.rollback()
            current_app.logger.warning(
                f"[aggregate-rebuild] wallet={wallet_address} minted={player.minted_points} exceeds ledger total={total_points}"
            )
            raise ConflictError(
                'Minted points exceed the ledger total; aggregates left unchanged',
                code='minted_exceeds_ledger',
            )
        player.total_points = total_points
        if last_played is not None:
            player.last_played = last_played
        existing = {stat.game_type: stat for stat in PlayerGameStat.query.filter_by(wallet_address=wallet_address)}
        for game_type, stat in existing.items():
            if game_type not in per_game:
                db.session.delete(stat)
        for game_type, row in per_game.items():
            stat = existing.get(game_type) or PlayerGameStat(wallet_address=wallet_address, game_type=game_type)
            stat.games_played = row.games_played
            stat.high_score = row.high_score
            db.session.add(stat)
        db.session.add(player)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(f"[aggregate-rebuild-failed] wallet={wallet_address}")
        raise StoreError('Could not rebuild player aggregates') from exc

    current_app.logger.info(
        f"[aggregate-rebuild] wallet={wallet_address} total_points={player.total_points} games={sorted(per_game)}"
    )
    return player
