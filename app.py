# app.py
"""WSGI entrypoint: ``flask --app app run`` or ``gunicorn app:app``."""
from core import create_app

app = create_app()

# Local dev entrypoint
if __name__ == "__main__":
    app.run(debug=True)
