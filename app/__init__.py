from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flasgger import Swagger

db = SQLAlchemy()
migrate = Migrate()
swagger = Swagger()

def create_app(config_class=None):
    """Application factory pattern"""
    if config_class is None:
        from config import Config
        config_class = Config

    app = Flask(__name__)
    app.config.from_object(config_class)

    # Swagger configuration
    app.config['SWAGGER'] = {
        'title': 'TruckMates API Documentation',
        'uiversion': 3,
        'openapi': '3.0.0',
        'info': {
            'title': 'TruckMates API',
            'description': 'Fleet, dispatch, accounting, IFTA and ELD/HOS compliance API',
            'version': '1.0.0',
        },
        'components': {
            'securitySchemes': {
                'Bearer': {
                    'type': 'http',
                    'scheme': 'bearer',
                    'bearerFormat': 'JWT',
                    'description': 'Enter JWT token'
                }
            }
        },
        'security': [
            {
                'Bearer': []
            }
        ]
    }

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    swagger.init_app(app)

    # Configure CORS with allowed origins from config
    cors_origins = app.config.get('CORS_ALLOWED_ORIGINS', ['*'])
    CORS(app, resources={r"/api/*": {
        "origins": "*" if '*' in cors_origins else cors_origins,
        "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        "allow_headers": ["Content-Type", "Authorization", "X-Webhook-Secret"],
        "expose_headers": ["Content-Type"],
        "supports_credentials": True
    }})

    # Register blueprints - one per domain
    from app.routes import (
        alerts, chat, crm, dependencies, dispatch, documents, drivers, eld,
        fuel, ifta, invoices, loadboards, subscriptions, webhooks
    )

    app.register_blueprint(chat.bp, url_prefix='/api/chat')
    app.register_blueprint(crm.bp, url_prefix='/api/crm')
    app.register_blueprint(drivers.bp, url_prefix='/api/drivers')
    app.register_blueprint(eld.bp, url_prefix='/api/eld')
    app.register_blueprint(dispatch.bp, url_prefix='/api/dispatch')
    app.register_blueprint(fuel.bp, url_prefix='/api/fuel')
    app.register_blueprint(ifta.bp, url_prefix='/api/ifta')
    app.register_blueprint(invoices.bp, url_prefix='/api/invoices')
    app.register_blueprint(dependencies.bp, url_prefix='/api/check-dependencies')
    app.register_blueprint(webhooks.bp, url_prefix='/api/webhooks')
    app.register_blueprint(subscriptions.bp, url_prefix='/api/subscriptions')
    app.register_blueprint(loadboards.bp, url_prefix='/api/loadboards')
    app.register_blueprint(documents.bp, url_prefix='/api/documents')
    app.register_blueprint(alerts.bp, url_prefix='/api/alerts')

    from app.utils.errors import register_error_handlers
    register_error_handlers(app)

    from app.jobs.cli import jobs_cli
    app.cli.add_command(jobs_cli)

    return app
