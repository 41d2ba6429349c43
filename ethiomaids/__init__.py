from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flasgger import Swagger
from werkzeug.exceptions import HTTPException

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

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Initialize Swagger
    swagger.init_app(app)

    # Configure CORS with allowed origins from config
    # '*' allows every origin (development), otherwise only the listed ones
    cors_origins = app.config.get('CORS_ALLOWED_ORIGINS', ['*'])
    CORS(app, resources={r"/api/*": {
        "origins": "*" if '*' in cors_origins else cors_origins,
        "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        "allow_headers": ["Content-Type", "Authorization", "Stripe-Signature"],
        "expose_headers": ["Content-Type", "Retry-After"],
        "supports_credentials": True
    }})

    # Register blueprints - resource-based structure
    from ethiomaids.routes import (
        auth, profiles, jobs, bookings, reviews, payouts, subscriptions,
        webhooks, whatsapp, admin, agency_team, messages, notifications, availability
    )

    app.register_blueprint(auth.bp, url_prefix='/api/auth')
    app.register_blueprint(profiles.bp, url_prefix='/api/profiles')
    app.register_blueprint(jobs.bp, url_prefix='/api/jobs')
    app.register_blueprint(bookings.bp, url_prefix='/api/bookings')
    app.register_blueprint(reviews.bp, url_prefix='/api/reviews')
    app.register_blueprint(payouts.bp, url_prefix='/api/payouts')
    app.register_blueprint(subscriptions.bp, url_prefix='/api/subscriptions')
    app.register_blueprint(webhooks.bp, url_prefix='/api/webhooks')
    app.register_blueprint(whatsapp.bp, url_prefix='/api/whatsapp')
    app.register_blueprint(admin.bp, url_prefix='/api/admin')
    app.register_blueprint(agency_team.bp, url_prefix='/api/agency')
    app.register_blueprint(messages.bp, url_prefix='/api/messages')
    app.register_blueprint(notifications.bp, url_prefix='/api/notifications')
    app.register_blueprint(availability.bp, url_prefix='/api/availability')

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({'error': e.description}), e.code

    # Admin commands (flask claims ..., flask users ..., flask init-db)
    from ethiomaids.cli import register_commands
    register_commands(app)

    # Swagger configuration
    app.config['SWAGGER'] = {
        'title': 'Ethio Maids API Documentation',
        'uiversion': 3,
        'openapi': '3.0.0',
        'info': {
            'title': 'Ethio Maids API',
            'description': 'Marketplace API for sponsors, maids, agencies and admins',
            'version': '1.0.0',
        },
        'servers': [
            {
                'url': 'http://localhost:5000',
                'description': 'Development server'
            }
        ],
        'components': {
            'securitySchemes': {
                'Bearer': {
                    'type': 'http',
                    'scheme': 'bearer',
                    'bearerFormat': 'JWT',
                    'description': 'Firebase ID token'
                }
            }
        },
        'security': [
            {
                'Bearer': []
            }
        ]
    }

    return app
