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
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Editor checkpoints go through one adapter so its cache is shared
    from spotdiff.services.engine.persistence import MemoryStore, PersistenceAdapter
    if flask_app.config.get('STORAGE_BACKEND') == 'memory':
        store = MemoryStore()
    else:
        from spotdiff.services.storage import DatabaseStore
        store = DatabaseStore()
    flask_app.extensions['spotdiff.persistence'] = PersistenceAdapter(store)

    # Import and register blueprints here
    from spotdiff.main import main
    flask_app.register_blueprint(main)

    from spotdiff.api.levels import levels
    flask_app.register_blueprint(levels, url_prefix='/api/levels')

    from spotdiff.api.play import play
    flask_app.register_blueprint(play, url_prefix='/api/play')

    from spotdiff.api.editor import editor
    flask_app.register_blueprint(editor, url_prefix='/api/editor')

    # Register Socket.IO event handlers
    from spotdiff.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from spotdiff.services.levels import SAMPLE_LEVEL, import_level
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            flask_app.extensions['spotdiff.persistence'].reset_cache()

            # Seed levels
            import_level(SAMPLE_LEVEL)
            print('Database has been reset and seeded!')

    @click.command('import-level')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    @click.option('--level', 'slug', default=None, help='Level id to overwrite (defaults to the file\'s "id").')
    def import_level_command(path, slug):
        """Imports a level JSON file."""
        from spotdiff.services.levels import LevelPayloadError, import_level, parse_payload_text
        with open(path, encoding='utf-8') as fh:
            text = fh.read()
        with flask_app.app_context():
            try:
                level = import_level(parse_payload_text(text), slug=slug)
            except LevelPayloadError as exc:
                raise click.ClickException(str(exc))
            print(f'Imported level {level.slug} ({len(level.get_differences())} differences)')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(import_level_command)

    return flask_app
