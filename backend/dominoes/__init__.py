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

    from dominoes.main import main
    flask_app.register_blueprint(main)

    from dominoes.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from dominoes.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from dominoes.api.store import store
    # Raw key-value relay used by remote room participants
    flask_app.register_blueprint(store, url_prefix='/api/store')

    # Register Socket.IO event handlers
    from dominoes.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database."""
        import dominoes.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('simulate')
    @click.option('--players', default=2, type=click.IntRange(2, 4), help='Number of computer players.')
    @click.option('--target', default=None, type=int, help='Target score (defaults to DEFAULT_TARGET_SCORE).')
    @click.option('--difficulty', default=None, type=click.Choice(['easy', 'medium', 'hard']))
    @click.option('--seed', default=None, type=int, help='Seed for a reproducible game.')
    def simulate_command(players, target, difficulty, seed):
        """Plays a full computer-only game and prints the result."""
        import random
        from dominoes.services.games.orchestrator import TurnOrchestrator
        from dominoes.services.games.state import Player, new_game

        rng = random.Random(seed)
        seats = [Player(id=f'cpu-{i + 1}', name=f'CPU {i + 1}', is_computer=True) for i in range(players)]
        state = new_game(
            seats,
            target_score=target or flask_app.config['DEFAULT_TARGET_SCORE'],
            difficulty=difficulty or flask_app.config['DEFAULT_DIFFICULTY'],
            rng=rng,
        )
        orchestrator = TurnOrchestrator(state, rng=rng)
        final = orchestrator.run_computer_turns(limit=100000)
        for result in final.round_history:
            print(f"Round {result.round}: {result.winner_id} wins{' (blocked)' if result.blocked else ''} {result.points}")
        scores = {p.name: p.score for p in final.players}
        print(f"Winner: {final.winner.name if final.winner else '-'}  scores={scores}")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(simulate_command)

    return flask_app
