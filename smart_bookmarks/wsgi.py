"""WSGI entry point for the application."""

from smart_bookmarks import create_app

# Create the Flask application
application = create_app()

if __name__ == "__main__":
    application.run(host='0.0.0.0', port=5000, debug=application.config.get('DEBUG', False), threaded=True)
