from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from arcade.errors import NotFoundError
from arcade.models import Player
from arcade.services.ledger.leaderboards import get_global_game_stats, get_player_game_stats, get_score_history
from arcade.services.ledger.minting import mint_points
from arcade.services.ledger.recorder import record_score


scores = Blueprint('scores', __name__)


def _settings():
    return current_app.extensions['ledger_settings']


def _notifier():
    return current_app.extensions['ledger_notifier']


@scores.route('/submit', methods=['POST'])
@login_required
def submit_score():
    settings = _settings()
    data = request.get_json(silent=True) or {}
    result = record_score(
        current_user.wallet_address,
        data.get('game_type'),
        data.get('score'),
        data.get('points'),
        data.get('game_data'),
        settings=settings,
    )
    # Fan-out only after the submission has committed
    snapshot = _notifier().score_submitted(result)

    payload = {
        'message': 'Score submitted successfully',
        'score': result.entry.to_dict(),
        'player': result.player.to_dict(settings),
    }
    if snapshot:
        payload.update({
            'player_game_stats': snapshot['player_game_stats'],
            'global_game_stats': snapshot['global_game_stats'],
            'leaderboards': {
                'overall': snapshot['overall'],
                'game': {'game_type': result.entry.game_type, 'entries': snapshot['game']},
            },
        })
    return jsonify(payload)


@scores.route('/mint', methods=['POST'])
@login_required
def mint():
    data = request.get_json(silent=True) or {}
    result = mint_points(current_user.wallet_address, data.get('points'), settings=_settings())
    summary = _notifier().points_minted(result)
    return jsonify({
        'message': 'Points minted successfully',
        'minted_points': result.minted_amount,
        'oracle_amount': result.converted_units,
        'player': summary,
    })


@scores.route('/history')
@login_required
def history():
    view = get_score_history(
        current_user.wallet_address,
        request.args.get('game_type'),
        request.args.get('page'),
        request.args.get('limit'),
        settings=_settings(),
    )
    return jsonify(view.to_dict(entries_key='scores'))


@scores.route('/stats')
@login_required
def stats():
    settings = _settings()
    player = Player.query.filter_by(wallet_address=current_user.wallet_address).first()
    if not player:
        raise NotFoundError('Player not found')
    return jsonify({
        'player': player.to_dict(settings),
        'game_stats': get_player_game_stats(player.wallet_address, settings=settings),
        'global_game_stats': get_global_game_stats(settings=settings),
    })
