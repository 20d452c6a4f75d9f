import logging

from dotenv import load_dotenv

load_dotenv()

from cacheperf import create_app
from cacheperf.config import get_settings

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = create_app()

if __name__ == '__main__':
    settings = get_settings()
    try:
        app.run(host='0.0.0.0', port=settings.port, threaded=True)
    except KeyboardInterrupt:
        logger.info("Shutdown signal received.")
    finally:
        logger.info("Application shut down.")
