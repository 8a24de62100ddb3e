from flask import Blueprint, current_app, jsonify, request

from arcade.services.ledger.leaderboards import (
    get_game_best_per_player,
    get_game_leaderboard,
    get_global_game_stats,
    get_overall_leaderboard,
)


leaderboard = Blueprint('leaderboard', __name__)


def _settings():
    return current_app.extensions['ledger_settings']


@leaderboard.route('/overall')
def overall():
    view = get_overall_leaderboard(request.args.get('page'), request.args.get('limit'), settings=_settings())
    return jsonify(view.to_dict())


@leaderboard.route('/game/<string:game_type>')
def game(game_type):
    view = get_game_leaderboard(game_type, request.args.get('page'), request.args.get('limit'), settings=_settings())
    return jsonify(view.to_dict())


@leaderboard.route('/game/<string:game_type>/highscores')
def game_highscores(game_type):
    view = get_game_best_per_player(game_type, request.args.get('page'), request.args.get('limit'), settings=_settings())
    return jsonify(view.to_dict())


@leaderboard.route('/game-stats')
def game_stats():
    return jsonify({'game_stats': get_global_game_stats(settings=_settings())})
