"""Management script: python manage.py init-db | seed-plans | create-admin"""

import os

from dotenv import load_dotenv
from flask.cli import FlaskGroup

from datawaves import create_app

load_dotenv()


def make_app():
    return create_app(os.getenv("FLASK_CONFIG", "development"))


cli = FlaskGroup(create_app=make_app)


if __name__ == "__main__":
    cli()
