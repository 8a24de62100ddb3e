from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy.exc import IntegrityError

from arcade import db
from arcade.models import Player
from arcade.services.ledger.validation import validate_wallet_format

main = Blueprint('main', __name__)


@main.route('/health')
def health():
    return jsonify({'message': 'Server is running!'})


@main.route('/auth/login', methods=['POST'])
def login():
    """Log in with a wallet address, creating the player on first login."""
    settings = current_app.extensions['ledger_settings']
    data = request.get_json(silent=True) or {}
    wallet_address = validate_wallet_format(data.get('wallet_address'), settings)

    player = Player.query.filter_by(wallet_address=wallet_address).first()
    if not player:
        player = Player(wallet_address=wallet_address, total_points=0, minted_points=0)
        db.session.add(player)
        try:
            db.session.commit()
            current_app.logger.info(f"[player-created] wallet={wallet_address}")
        except IntegrityError:
            # Another login created it first
            db.session.rollback()
            player = Player.query.filter_by(wallet_address=wallet_address).one()

    login_user(player, remember=True)
    return jsonify({'success': True, 'player': player.to_dict(settings)})


@main.route('/auth/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})


@main.route('/auth/profile')
@login_required
def profile():
    settings = current_app.extensions['ledger_settings']
    return jsonify(current_user.to_dict(settings))
