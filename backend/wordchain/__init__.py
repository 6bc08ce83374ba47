from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    origins = flask_app.config.get('CORS_ORIGINS') or '*'
    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=origins)
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    # Collaborators shared by the HTTP and Socket.IO adapters
    from wordchain.services.game.dictionary import load_word_list
    from wordchain.services.signaling.ready_set import build_ready_set
    flask_app.extensions['wordchain.dictionary'] = load_word_list(flask_app.config.get('WORD_LIST_PATH'))
    flask_app.extensions['wordchain.ready_set'] = build_ready_set(flask_app.config.get('READY_SET_URL'))

    from wordchain.main import main
    flask_app.register_blueprint(main)

    from wordchain.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from wordchain.api.words import words
    flask_app.register_blueprint(words, url_prefix='/api/words')

    from wordchain.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the room store schema."""
        import wordchain.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Room store has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
