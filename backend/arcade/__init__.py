import logging

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(getattr(logging, str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    from arcade.settings import LedgerSettings
    settings = LedgerSettings.from_config(flask_app.config)
    flask_app.extensions['ledger_settings'] = settings

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from arcade.services.ledger.notifier import Notifier, SocketIOPublisher
    flask_app.extensions['ledger_notifier'] = Notifier(SocketIOPublisher(socketio), settings)

    from arcade.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Import and register blueprints here
    from arcade.main import main
    flask_app.register_blueprint(main, url_prefix='/api')

    from arcade.api.scores import scores
    flask_app.register_blueprint(scores, url_prefix='/api/scores')

    from arcade.api.leaderboard import leaderboard
    flask_app.register_blueprint(leaderboard, url_prefix='/api/leaderboard')

    from arcade.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    # Importing here ensures the handlers bind to the initialized socketio instance
    from arcade.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    # Flask-Login user loader
    from arcade.models import Player

    @login_manager.user_loader
    def load_player(player_id):
        return db.session.get(Player, int(player_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Authentication required', 'code': 'unauthorized'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the ledger tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('rebuild-aggregates')
    @click.option('--wallet', 'wallet_address', default=None, help='Only rebuild this wallet.')
    def rebuild_aggregates_command(wallet_address):
        """Recomputes player totals and per-game stats from the score ledger."""
        from arcade.errors import ConflictError
        from arcade.services.ledger.recorder import rebuild_player_aggregate
        with flask_app.app_context():
            if wallet_address:
                wallets = [wallet_address]
            else:
                wallets = [row.wallet_address for row in db.session.query(Player.wallet_address).order_by(Player.id)]
            rebuilt = 0
            for wallet in wallets:
                try:
                    player = rebuild_player_aggregate(wallet)
                except ConflictError as exc:
                    click.echo(f'Skipped {wallet}: {exc.message}')
                    continue
                if player is None:
                    click.echo(f'No player for {wallet}')
                    continue
                rebuilt += 1
            click.echo(f'Rebuilt aggregates for {rebuilt} player(s).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(rebuild_aggregates_command)

    return flask_app
