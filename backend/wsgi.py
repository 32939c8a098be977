# backend/wsgi.py
from stockmesh import create_app

app = create_app()
