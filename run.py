from dotenv import load_dotenv
load_dotenv()  # Load .env file

import logging
import os

import click

from app import create_app, db
from config import config

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = create_app(config.get(os.environ.get('FLASK_ENV', 'development')))

@app.shell_context_processor
def make_shell_context():
    from app import models
    return {'db': db, 'app': app, 'models': models}

@app.cli.command('init-db')
def init_db_command():
    """Create extensions, tables and the default subscription plans."""
    from app.utils.db_init import initialize_database
    if not initialize_database():
        raise click.ClickException('Database initialization failed, see log for details')
    click.echo('Database initialized')

if __name__ == '__main__':
    with app.app_context():
        from app.utils.db_init import initialize_database
        if initialize_database():
            logger.info("Database ready - starting TruckMates API")
        else:
            logger.warning("Database initialization failed - starting TruckMates API anyway (run `flask init-db`)")

    port = int(os.environ.get('PORT', 5000))
    logger.info(f"TruckMates API starting on http://0.0.0.0:{port}")
    app.run(debug=app.config.get('DEBUG', False), host='0.0.0.0', port=port)
