# make_admin.py
# Usage: python make_admin.py <mobile> [name] [password]

import sys
from sqlalchemy.exc import IntegrityError

from app import create_app
from extensions import db
from models import User

DEFAULT_NAME = "Administrator"
DEFAULT_PASSWORD = "admin123"  # only used if you create the user, change it after creation


def make_admin(mobile, name=DEFAULT_NAME, password=DEFAULT_PASSWORD):
    app = create_app()
    with app.app_context():
        user = User.query.filter_by(mobile=mobile).first()

        if user:
            print(f"Found user id={user.id}, mobile={user.mobile}. Promoting to admin...")
        else:
            print(f"No user with mobile {mobile} found, creating a new user.")
            try:
                user = User(mobile=mobile, name=name)
                user.set_password(password)
                db.session.add(user)
                db.session.commit()
                print(f"Created user id={user.id} with mobile={mobile}.")
            except IntegrityError as e:
                db.session.rollback()
                print("IntegrityError while creating user (maybe mobile already exists):", e)
                user = User.query.filter_by(mobile=mobile).first()
                if not user:
                    raise RuntimeError("Failed to create or find user after IntegrityError.") from e

        user.role = "admin"
        db.session.commit()
        print(f"User (id={user.id}, mobile={mobile}) is now admin.")
        return user


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python make_admin.py <mobile> [name] [password]")
        sys.exit(1)
    make_admin(*sys.argv[1:4])
