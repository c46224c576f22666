# backend/wsgi.py
# FLASK_APP=wsgi.py python -m flask run
from fastfood import create_app

app = create_app()
