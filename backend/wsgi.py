# backend/wsgi.py
from bookcycle import create_app

app = create_app()
