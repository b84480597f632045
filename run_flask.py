"""
Run the Flask app (witness statement formatter).
Activate your venv first, then: python run_flask.py
"""
from app import configure_logging, create_app
from witness_ai.config import Config

if __name__ == "__main__":
    config = Config()
    configure_logging(config.LOG_LEVEL)
    app = create_app(config)
    app.run(debug=True, port=5000, use_reloader=False)
