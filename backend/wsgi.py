"""WSGI configuration for production deployment."""
import os
from dotenv import load_dotenv
from homework_manager import create_app
from homework_manager.scheduler import RecurringGenerationScheduler

load_dotenv()

# Create Flask application instance
app = create_app(os.getenv('FLASK_ENV', 'production'))

# Run with a single worker, or disable SCHEDULER_ENABLED on all but one
scheduler = RecurringGenerationScheduler(app)
if app.config.get('SCHEDULER_ENABLED'):
    scheduler.start()

if __name__ == "__main__":
    app.run()
