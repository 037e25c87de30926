import argparse
import sys

from sqlalchemy.exc import SQLAlchemyError

from api.logging_setup import configure_logging
from auth_service.credentials import CredentialStore
from auth_service.database import connect_with_retry, create_db_engine, make_session_factory
from auth_service.errors import AppError
from auth_service.models import Role
from auth_service.security import PasswordHasher
from config import Settings


def build_parser():
    parser = argparse.ArgumentParser(description="Task backend administration")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("check-db", help="Verify the database is reachable")

    create = sub.add_parser("create-user", help="Register a user")
    create.add_argument("--name", type=str, required=True)
    create.add_argument("--email", type=str, required=True)
    create.add_argument("--password", type=str, required=True)
    create.add_argument("--role", type=str, choices=[r.value for r in Role], default=Role.USER.value)
    return parser


def check_db(settings):
    engine = create_db_engine(settings.database_url, settings.db_pool_size)
    try:
        connect_with_retry(engine, retries=0)
    finally:
        engine.dispose()
    print("✅ Successfully connected to the database.")
    return 0


def create_user(settings, args):
    engine = create_db_engine(settings.database_url, settings.db_pool_size)
    try:
        connect_with_retry(engine, retries=0)
        with make_session_factory(engine)() as db:
            store = CredentialStore(db, PasswordHasher(settings.bcrypt_rounds))
            user = store.register(args.name, args.email, args.password, Role(args.role))
    except (AppError, SQLAlchemyError) as e:
        print(f"❌ Could not create user: {e}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()
    print(f"✅ Created {user.role.value} {user.email} (id={user.id})")
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings)

    if args.command == "check-db":
        return check_db(settings)
    return create_user(settings, args)


if __name__ == "__main__":
    sys.exit(main())
