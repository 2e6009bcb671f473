# app.py
# Main Flask application file, built with the Application Factory pattern

import logging
import os

import click
from flask import Flask
from config import Config
from extensions import db, migrate

# Models are imported here so that Alembic (Migrate) can see them
from models import School, Admin, SuperAdmin, Fair, Category, Criterion, Evaluator, Project, Evaluation, ScoreItem, AccessRequest, PreRegistration

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def configure_logging(level):
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


def register_commands(app):
    @app.cli.command('create-superadmin')
    @click.option('--name', prompt=True)
    @click.option('--email', prompt=True)
    @click.password_option()
    def create_superadmin(name, email, password):
        """Creates (or updates the password of) a platform super admin."""
        db.create_all()
        email = email.strip().lower()
        superadmin = SuperAdmin.query.filter_by(email=email).first()
        if superadmin is None:
            superadmin = SuperAdmin(name=name, email=email)
            db.session.add(superadmin)
        superadmin.set_password(password)
        db.session.commit()
        click.echo(f'Super admin {email} ready.')

    @app.cli.command('seed-demo')
    @click.option('--reset', is_flag=True, help='Delete every existing record first.')
    def seed_demo_command(reset):
        """Fills the database with a demo school, fair and evaluators."""
        from seed_data import seed_demo

        db.create_all()
        try:
            result = seed_demo(reset=reset)
        except RuntimeError as e:
            raise click.ClickException(str(e))
        click.echo(f'Admin login: {result["admin_email"]} / {result["admin_password"]}')
        for name, pin in result['pins'].items():
            click.echo(f'Evaluator {name}: PIN {pin}')


def create_app(config_class=Config):
    # Create the application instance
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app.config['LOG_LEVEL'])
    os.makedirs(app.instance_path, exist_ok=True)

    @app.context_processor
    def inject_display_maps():
        ROLE_MAP = {
            'evaluator': 'Evaluator',
            'admin': 'School admin',
            'superadmin': 'Platform admin'
        }
        # Make ROLE_MAP available in every template
        return dict(ROLE_MAP=ROLE_MAP)

    # --- Bind the extensions to this app ---
    db.init_app(app)
    migrate.init_app(app, db)

    # --- Register the Blueprints (routes) ---
    from routes.auth import auth_bp
    from routes.public import public_bp
    from routes.evaluator import evaluator_bp
    from routes.admin import admin_bp
    from routes.superadmin import superadmin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(public_bp)
    app.register_blueprint(evaluator_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(superadmin_bp)

    register_commands(app)

    app.logger.info('Application started with database %s', app.config['SQLALCHEMY_DATABASE_URI'].split('://')[0])
    return app
