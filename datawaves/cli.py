"""Flask CLI commands: ``flask init-db``, ``flask seed-plans``, ``flask create-admin``."""

from decimal import Decimal

import click

from datawaves.extensions import db
from datawaves.models.data_plan import DataPlan
from datawaves.models.user import User, UserRole
from datawaves.purchases.services import get_services, load_persisted_markups

SAMPLE_PLANS = {
    "mtn": [("1", "5.00"), ("2", "9.50"), ("5", "20.00"), ("10", "38.00")],
    "telecel": [("1", "4.80"), ("3", "13.50"), ("5", "21.00"), ("10", "40.00")],
    "airteltigo": [("1", "4.50"), ("2", "8.80"), ("5", "19.50"), ("10", "36.00")],
}


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all database tables"""
        db.create_all()
        load_persisted_markups(get_services())
        click.echo("✅ Database initialized successfully!")

    @app.cli.command("seed-plans")
    def seed_plans():
        """Insert sample MTN, Telecel and AirtelTigo plans"""
        created = 0
        for provider, plans in SAMPLE_PLANS.items():
            for size, base_price in plans:
                exists = DataPlan.query.filter_by(provider=provider, size=size).first()
                if exists:
                    continue
                db.session.add(DataPlan(provider=provider, size=size, base_price=Decimal(base_price)))
                created += 1
        db.session.commit()
        click.echo(f"✅ {created} plans created.")

    @app.cli.command("create-admin")
    @click.option("--email", prompt="Admin email")
    @click.option("--full-name", prompt="Full name")
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    def create_admin(email, full_name, password):
        """Create an admin user"""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            raise click.ClickException(f"User with email '{email}' already exists!")

        user = User(full_name=full_name.strip(), email=email, role=UserRole.ADMIN)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f"✅ Admin user created successfully: {email}")

    return app
