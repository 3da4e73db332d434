from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from dotenv import load_dotenv
from flask_wtf.csrf import CSRFProtect
from zoneinfo import ZoneInfo

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
login_manager.login_view = 'main.login'
login_manager.login_message = 'Please sign in to open the ledger.'
csrf = CSRFProtect()


def create_app(config_object='config.Config'):
    load_dotenv()

    app = Flask(__name__)
    app.config.from_object(config_object)
    # unknown zone names fail here rather than on the first request
    ZoneInfo(app.config["TIMEZONE"])

    from goldledger.logger import setup_logger
    setup_logger(app)

    # app first, then the extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)

    from goldledger import models
    from goldledger.store import SaleStore

    # one store per process, shared by routes and CLI commands
    app.extensions['sale_store'] = SaleStore(db)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(models.User, int(user_id))

    from goldledger.routes import main_bp, sales_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(sales_bp)

    from goldledger.cli import sales_cli, users_cli
    app.cli.add_command(sales_cli)
    app.cli.add_command(users_cli)

    app.jinja_env.filters['inr'] = _inr_filter
    app.jinja_env.filters['localtime'] = _localtime_filter

    return app


def _inr_filter(value):
    from goldledger.ledger import format_inr
    return format_inr(value)


def _localtime_filter(value):
    from goldledger.ledger import to_local
    from goldledger.routes import shop_timezone
    return to_local(value, shop_timezone())
