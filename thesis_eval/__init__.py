from flask import Flask
from sqlalchemy import event
from sqlalchemy.engine import Engine

from .extensions import db, login_manager, migrate, rq
from .errors import error_response, register_error_handlers


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE clauses unless asked per connection
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(config_object='config.Config'):
    """App factory.

    ``config_object`` is a dotted path (``config.TestingConfig`` in tests).
    """
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    rq.init_app(app)

    from .models.user import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return error_response("Authentication required", 401, "unauthorized")

    register_error_handlers(app)

    from .blueprints.auth import bp as auth_bp
    from .api.evaluation import bp as evaluation_bp
    from .api.student import bp as student_bp
    from .api.admin import bp as admin_bp
    from .api.notifications import bp as notifications_bp

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(evaluation_bp)
    app.register_blueprint(student_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(notifications_bp)

    @app.get('/healthz')
    def healthz():
        return {"ok": True}

    return app
