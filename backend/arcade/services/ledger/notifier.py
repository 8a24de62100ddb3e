"""Post-commit fan-out of ledger changes to socket subscribers.

Delivery is best effort: snapshots are recomputed after the mutation has
committed, without isolation from other writers, and a failed publish is
logged and skipped. Subscribers that are not connected miss the event.
"""

from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .leaderboards import (
    get_game_leaderboard,
    get_global_game_stats,
    get_overall_leaderboard,
    get_player_game_stats,
)


GLOBAL_TOPIC = None
SOCKET_NAMESPACE = '/ws'


def player_topic(wallet_address: str) -> str:
    return f"player:{wallet_address}"


class SocketIOPublisher:
    """Publishes to a Socket.IO room, or to every client for the global topic."""

    def __init__(self, socketio, namespace: str = SOCKET_NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def publish(self, topic: Optional[str], event: str, payload) -> None:
        if topic is GLOBAL_TOPIC:
            self.socketio.emit(event, payload, namespace=self.namespace)
        else:
            self.socketio.emit(event, payload, to=topic, namespace=self.namespace)


class Notifier:
    def __init__(self, publisher, settings):
        self.publisher = publisher
        self.settings = settings

    def _publish(self, topic, event, payload) -> None:
        try:
            self.publisher.publish(topic, event, payload)
        except Exception:
            current_app.logger.warning(f"[fanout-skip] topic={topic} event={event}", exc_info=True)

    def score_submitted(self, result) -> Optional[dict]:
        """Recompute the views touched by a submission and fan them out.

        Returns the recomputed snapshots, or None when they could not be
        computed (the submission itself has already been committed).
        """
        wallet_address = result.player.wallet_address
        game_type = result.entry.game_type
        limit = self.settings.broadcast_limit
        try:
            snapshot = {
                'player': result.player.to_dict(self.settings),
                'player_game_stats': get_player_game_stats(wallet_address, settings=self.settings),
                'global_game_stats': get_global_game_stats(settings=self.settings),
                'overall': get_overall_leaderboard(1, limit, settings=self.settings).entries,
                'game': get_game_leaderboard(game_type, 1, limit, settings=self.settings).entries,
            }
        except SQLAlchemyError:
            current_app.logger.exception(f"[fanout-recompute-failed] wallet={wallet_address} game={game_type}")
            return None

        topic = player_topic(wallet_address)
        self._publish(topic, 'player_update', {
            'player': snapshot['player'],
            'game_stats': snapshot['player_game_stats'],
        })
        self._publish(topic, 'scores_refresh', {'game_type': game_type})

        self._publish(GLOBAL_TOPIC, 'score_new', {'game_type': game_type, 'score': result.entry.to_dict()})
        self._publish(GLOBAL_TOPIC, 'leaderboard_update', {'type': 'overall', 'leaderboard': snapshot['overall']})
        self._publish(GLOBAL_TOPIC, 'leaderboard_update', {'type': game_type, 'leaderboard': snapshot['game']})
        self._publish(GLOBAL_TOPIC, 'game_stats_update', snapshot['global_game_stats'])
        current_app.logger.info(f"[fanout] submission wallet={wallet_address} game={game_type}")
        return snapshot

    def points_minted(self, result) -> dict:
        summary = result.player.to_dict(self.settings)
        self._publish(player_topic(summary['wallet_address']), 'player_update', {'player': summary})
        current_app.logger.info(f"[fanout] mint wallet={summary['wallet_address']}")
        return summary
