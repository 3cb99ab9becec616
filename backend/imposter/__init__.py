from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Collaborators the round engine looks up at runtime; tests swap these out
    from imposter.events import SocketIOBroadcaster
    from imposter.services.game.words import WordSupplier
    flask_app.extensions['imposter.broadcaster'] = SocketIOBroadcaster()
    flask_app.extensions['imposter.words'] = WordSupplier.from_file(flask_app.config['WORDS_PATH'])

    from imposter.main import main
    flask_app.register_blueprint(main)

    from imposter.api.lobbies import lobbies
    flask_app.register_blueprint(lobbies, url_prefix='/api/lobbies')

    from imposter.api.game import game
    flask_app.register_blueprint(game, url_prefix='/api/game')

    from imposter.errors import register_error_handlers
    register_error_handlers(flask_app)

    from imposter.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database with a demo lobby."""
        from imposter.models import Lobby, Player
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            lobby = Lobby(target_score=flask_app.config['DEFAULT_TARGET_SCORE'])
            db.session.add(lobby)
            db.session.flush()
            names = ['Alice', 'Bob', 'Charlie', 'Dave']
            players = [Player(name=n, lobby_id=lobby.id) for n in names]
            db.session.add_all(players)
            db.session.flush()
            lobby.owner_id = players[0].id

            db.session.commit()
            print(f'Database has been reset and seeded! Demo lobby code: {lobby.code}')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
