from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from arcade.models import PlayerGameStat
from arcade.services.ledger.validation import require_known_game


games = Blueprint('games', __name__)


@games.route('/', methods=['GET'])
def list_games():
    settings = current_app.extensions['ledger_settings']
    return jsonify({
        'games': [
            {'id': game_type, 'status': status}
            for game_type, status in settings.game_statuses().items()
        ]
    })


@games.route('/<string:game_type>/highscore', methods=['GET'])
@login_required
def get_highscore(game_type):
    settings = current_app.extensions['ledger_settings']
    game_type = require_known_game(game_type, settings)
    stat = PlayerGameStat.query.filter_by(wallet_address=current_user.wallet_address, game_type=game_type).first()
    return jsonify({
        'game_id': game_type,
        'high_score': stat.high_score if stat else 0,
        'games_played': stat.games_played if stat else 0,
        'wallet_address': current_user.wallet_address,
    })
