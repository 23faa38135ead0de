import logging

from flask import Flask, jsonify

from .config import Settings
from .constants import EscolaMatricula
from .extensions import db, login_manager, migrate
from .routes import register_blueprints
from .cli import register_commands


def create_app(overrides: dict | None = None) -> Flask:
    from dotenv import load_dotenv  # noqa: PLC0415

    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)
    import os  # noqa: PLC0415

    os.makedirs(app.instance_path, exist_ok=True)
    settings = Settings.from_env()

    database_url = settings.database_url
    if database_url.startswith("sqlite:///instance/"):
        filename = database_url.removeprefix("sqlite:///instance/")
        database_url = f"sqlite:///{os.path.join(app.instance_path, filename)}"

    app.config.update(
        SECRET_KEY=settings.secret_key,
        SQLALCHEMY_DATABASE_URI=database_url,
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        LOG_LEVEL=settings.log_level,
        CANCELAMENTO_ANTECEDENCIA_HORAS_PADRAO=settings.antecedencia_padrao_horas,
        CANCELAMENTO_ANTECEDENCIA_HORAS_POR_ESCOLA={
            EscolaMatricula.YOUBECOME.value: settings.antecedencia_youbecome_horas,
        },
        ESCOLAS_APROVACAO_PROFESSOR=(EscolaMatricula.YOUBECOME.value,),
        NOTIFICACOES_ADMIN_EMAIL=settings.admin_email,
    )
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    from .models import Usuario  # noqa: PLC0415
    from .services.notificacoes import EXTENSION_KEY, LoggingSink  # noqa: PLC0415

    app.extensions.setdefault(EXTENSION_KEY, LoggingSink())

    @login_manager.user_loader
    def load_user(user_id: str) -> Usuario | None:
        try:
            usuario_id = int(user_id)
        except ValueError:
            return None
        return db.session.get(Usuario, usuario_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"ok": False, "message": "Não autenticado"}), 401

    register_blueprints(app)
    register_commands(app)

    return app
