import os
import logging

from dotenv import load_dotenv
load_dotenv()

from config import config
from ethiomaids import create_app, db
from ethiomaids import models
from ethiomaids.utils.db_init import initialize_database

logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO'),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = create_app(config.get(os.environ.get('FLASK_ENV', 'development')))


@app.shell_context_processor
def make_shell_context():
    return {
        'db': db,
        'Profile': models.Profile,
        'Job': models.Job,
        'BookingRequest': models.BookingRequest,
        'Subscription': models.Subscription,
    }


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    with app.app_context():
        if not initialize_database():
            logger.warning("Database setup incomplete; run `flask init-db` once the database is reachable")
    logger.info("Ethio Maids API listening on port %s", port)
    app.run(debug=app.config.get('DEBUG', False), host='0.0.0.0', port=port)
