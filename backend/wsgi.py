# backend/wsgi.py
from spherical import create_app

app = create_app()
