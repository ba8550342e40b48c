"""Entry point for the `flask` CLI (FLASK_APP=wsgi)."""
from delivery_engine import create_app

# Create the application instance
app = create_app()
