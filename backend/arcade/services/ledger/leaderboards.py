"""Ranked views computed on demand from the ledger and player tables.

Nothing here is cached: every call reflects the store at query time.
Ranks are 1-based positions in the full ordering, so page N starts at
``(N - 1) * limit + 1``.
"""

import math
from dataclasses import dataclass, field
from typing import List

from sqlalchemy import func

from arcade import db
from arcade.models import Player, ScoreEntry, isoformat
from .validation import normalize_wallet_address, parse_pagination, require_known_game


@dataclass
class PagedView:
    entries: List[dict]
    page: int
    limit: int
    total: int
    total_key: str = 'total'
    extra: dict = field(default_factory=dict)

    @property
    def has_next_page(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1

    def pagination(self) -> dict:
        return {
            'current_page': self.page,
            'total_pages': math.ceil(self.total / self.limit) if self.total else 0,
            self.total_key: self.total,
            'has_next_page': self.has_next_page,
            'has_prev_page': self.has_prev_page,
        }

    def to_dict(self, entries_key='leaderboard') -> dict:
        payload = dict(self.extra)
        payload[entries_key] = self.entries
        payload['pagination'] = self.pagination()
        return payload


def _empty_game_stats():
    return {'total_games': 0, 'high_score': 0, 'total_points': 0, 'average_score': 0}


def get_overall_leaderboard(page, limit, *, settings) -> PagedView:
    page, limit = parse_pagination(page, limit, settings)
    total = db.session.query(func.count(Player.id)).scalar() or 0
    players = (
        Player.query
        .order_by(Player.total_points.desc(), Player.created_at.asc(), Player.wallet_address.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    entries = []
    for index, player in enumerate(players):
        summary = player.to_dict(settings)
        entries.append({
            'rank': (page - 1) * limit + index + 1,
            'wallet_address': summary['wallet_address'],
            'total_points': summary['total_points'],
            'high_scores': summary['high_scores'],
            'games_played': summary['games_played'],
            'total_games': summary['total_games'],
        })
    return PagedView(entries=entries, page=page, limit=limit, total=total, total_key='total_users')


def get_game_leaderboard(game_type, page, limit, *, settings) -> PagedView:
    game_type = require_known_game(game_type, settings)
    page, limit = parse_pagination(page, limit, settings)
    query = ScoreEntry.query.filter_by(game_type=game_type)
    total = query.count()
    rows = (
        query
        .order_by(ScoreEntry.score.desc(), ScoreEntry.played_at.asc(), ScoreEntry.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    entries = [
        {
            'rank': (page - 1) * limit + index + 1,
            'wallet_address': row.wallet_address,
            'score': row.score,
            'points': row.points,
            'played_at': isoformat(row.played_at),
        }
        for index, row in enumerate(rows)
    ]
    return PagedView(entries=entries, page=page, limit=limit, total=total,
                     total_key='total_scores', extra={'game_type': game_type})


def get_game_best_per_player(game_type, page, limit, *, settings) -> PagedView:
    game_type = require_known_game(game_type, settings)
    page, limit = parse_pagination(page, limit, settings)
    high_score = func.max(ScoreEntry.score)
    rows = (
        db.session.query(
            ScoreEntry.wallet_address,
            high_score.label('high_score'),
            func.sum(ScoreEntry.points).label('total_points'),
            func.count(ScoreEntry.id).label('games_played'),
            func.max(ScoreEntry.played_at).label('last_played'),
        )
        .filter(ScoreEntry.game_type == game_type)
        .group_by(ScoreEntry.wallet_address)
        .order_by(high_score.desc(), ScoreEntry.wallet_address.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    total = (
        db.session.query(func.count(func.distinct(ScoreEntry.wallet_address)))
        .filter(ScoreEntry.game_type == game_type)
        .scalar()
    ) or 0
    entries = [
        {
            'rank': (page - 1) * limit + index + 1,
            'wallet_address': row.wallet_address,
            'high_score': row.high_score,
            'total_points': int(row.total_points or 0),
            'games_played': row.games_played,
            'last_played': isoformat(row.last_played),
        }
        for index, row in enumerate(rows)
    ]
    return PagedView(entries=entries, page=page, limit=limit, total=total,
                     total_key='total_users', extra={'game_type': game_type})


def get_global_game_stats(*, settings) -> dict:
    stats = {}
    for game_type in settings.game_types:
        top = (
            ScoreEntry.query
            .filter_by(game_type=game_type)
            .order_by(ScoreEntry.score.desc(), ScoreEntry.played_at.asc(), ScoreEntry.id.asc())
            .first()
        )
        if top:
            stats[game_type] = {
                'highest_score': top.score,
                'points': top.points,
                'top_player': {'wallet_address': top.wallet_address, 'played_at': isoformat(top.played_at)},
            }
        else:
            stats[game_type] = {
                'highest_score': 0,
                'points': 0,
                'top_player': {'wallet_address': None, 'played_at': None},
            }
    return stats


def get_player_game_stats(wallet_address, *, settings) -> dict:
    wallet_address = normalize_wallet_address(wallet_address)
    rows = (
        db.session.query(
            ScoreEntry.game_type,
            func.count(ScoreEntry.id).label('total_games'),
            func.max(ScoreEntry.score).label('high_score'),
            func.sum(ScoreEntry.points).label('total_points'),
            func.avg(ScoreEntry.score).label('average_score'),
        )
        .filter(ScoreEntry.wallet_address == wallet_address)
        .group_by(ScoreEntry.game_type)
        .all()
    )
    stats = {game_type: _empty_game_stats() for game_type in settings.game_types}
    for row in rows:
        stats[row.game_type] = {
            'total_games': row.total_games,
            'high_score': row.high_score,
            'total_points': int(row.total_points or 0),
            'average_score': round(float(row.average_score or 0), 1),
        }
    return stats


def get_score_history(wallet_address, game_type, page, limit, *, settings) -> PagedView:
    wallet_address = normalize_wallet_address(wallet_address)
    page, limit = parse_pagination(page, limit, settings)
    query = ScoreEntry.query.filter_by(wallet_address=wallet_address)
    if game_type:
        query = query.filter_by(game_type=require_known_game(game_type, settings))
    total = query.count()
    rows = (
        query
        .order_by(ScoreEntry.played_at.desc(), ScoreEntry.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return PagedView(entries=[row.to_dict() for row in rows], page=page, limit=limit,
                     total=total, total_key='total_scores')
