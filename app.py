import os
import logging
import click
from logging.handlers import RotatingFileHandler
from flask import Flask
from config import config
from extensions import db, migrate


def configure_logging(app):
    """Configure application logging"""
    if not app.debug and not app.testing:
        log_dir = app.config.get('LOG_DIR', 'logs')
        if not os.path.exists(log_dir):
            os.mkdir(log_dir)

        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'car_stats.log'),
            maxBytes=10240000,  # 10MB
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s %(name)s: %(message)s '
            '[in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        logging.getLogger('services').addHandler(file_handler)
        logging.getLogger('services').setLevel(logging.INFO)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Car stats startup')
    else:
        app.logger.setLevel(logging.DEBUG)
        logging.getLogger('services').setLevel(logging.DEBUG)
        app.logger.info('Car stats startup (DEBUG mode)')


def create_app(config_name=None):
    """Application factory pattern"""

    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)

    # Import models to ensure they're registered with SQLAlchemy
    with app.app_context():
        import models

    if not app.testing and app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///'):
        instance_dir = os.path.dirname(app.config['SQLALCHEMY_DATABASE_URI'][len('sqlite:///'):])
        if instance_dir and not os.path.exists(instance_dir):
            os.makedirs(instance_dir)

    with app.app_context():
        db.create_all()

    register_commands(app)

    return app


def register_commands(app):
    """Register Flask CLI commands."""

    @app.cli.group('car-stats')
    def car_stats():
        """Rebuild vehicle summary statistics."""
        pass

    @car_stats.command('recalculate')
    @click.argument('vehicle_id', type=int)
    @click.option('--currency', default=None, help='Only rebuild rows for this home currency (ISO 4217).')
    def recalculate(vehicle_id, currency):
        """Rebuild all summaries of VEHICLE_ID from its records and travels."""
        from models.vehicles import Vehicle
        from services.car_stats_service import CarStatsService

        vehicle = db.session.get(Vehicle, vehicle_id)
        if not vehicle:
            click.echo(f'ERROR: No vehicle found with id {vehicle_id}', err=True)
            return
        currency = currency.upper() if currency else None
        try:
            CarStatsService.recalculate_car_stats(vehicle_id, currency)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        scope = f' ({currency})' if currency else ''
        click.echo(f'SUCCESS: Stats rebuilt for vehicle {vehicle_id}{scope}.')

    @car_stats.command('recalculate-all')
    @click.option('--yes', is_flag=True, help='Do not ask for confirmation.')
    def recalculate_all(yes):
        """Rebuild every summary in the database (maintenance use)."""
        from services.car_stats_service import CarStatsService

        if not yes and not click.confirm('This clears and rebuilds all car summaries. Continue?'):
            click.echo('Aborted')
            return
        try:
            vehicles_count = CarStatsService.recalculate_all_stats()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        click.echo(f'SUCCESS: Stats rebuilt for {vehicles_count} vehicle(s).')


