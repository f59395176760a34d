# backend/wsgi.py
from gymledger import create_app

app = create_app()
