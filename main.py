#!/usr/bin/env python3
"""
ELLP -- Volunteer and workshop management API.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py seed

Environment variables (see core/config.py):
  SECRET_KEY            Token signing key, at least 32 characters.
  DATABASE_URL          SQLAlchemy URL (default: sqlite:///ellp.db)
  PORT                  Listening port for `serve` (default: 8080)
  TOKEN_EXPIRE_SECONDS  Session token lifetime (default: 86400)
"""

import argparse
from datetime import timedelta

from auth.models import Role
from auth.passwords import PlaintextPassword
from auth.service import UserService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from core.errors import Conflict
from core.validators import utcnow
from roster.models import Volunteer
from roster.service import MembershipService, VolunteerService, WorkshopService
from roster.store import RosterStore

_SEED_USERS = [
    ("Admin User", "admin@ellp.com", "Admin123456", Role.admin),
    ("Regular User", "user@ellp.com", "User123456", Role.member),
    ("Coordinator", "coordinator@ellp.com", "Coord123456", Role.member),
]

# (name, days from today, description)
_SEED_WORKSHOPS = [
    ("Introduction to Programming", 7, "First steps with logic and algorithms."),
    ("Robotics for Kids", 14, "Building and programming simple robots."),
    ("Web Development Basics", 21, "HTML, CSS and a first interactive page."),
    ("Digital Citizenship", 28, "Online safety and responsible internet use."),
    ("Game Design Workshop", 30, "Designing a small game from idea to prototype."),
]

# (name, email, is_academic, course, registration_number, days since entry)
_SEED_VOLUNTEERS = [
    ("Joao Silva", "joao.silva@example.com", True, "Computer Science", "2023001", 180),
    ("Maria Santos", "maria.santos@example.com", True, "Software Engineering", "2023002", 120),
    ("Pedro Costa", "pedro.costa@example.com", False, "", "", 90),
]


def seed() -> None:
    """Create sample accounts, workshops and volunteers through the services.

    Records that already exist are reported and skipped, so seeding twice is safe.
    """
    settings = get_settings()
    user_store = UserStore(db_url=settings.database_url)
    roster_store = RosterStore(db_url=settings.database_url)
    users = UserService(user_store, TokenService.from_settings(settings))
    membership = MembershipService(roster_store)
    volunteers = VolunteerService(roster_store, membership)
    workshops = WorkshopService(roster_store, membership)

    print("\nSeeding ELLP database")
    print("-" * 40)
    try:
        for name, email, password, role in _SEED_USERS:
            if user_store.get_by_email(email) is not None:
                print(f"  user      {email} already exists, skipped")
                continue
            users.register(name, email, PlaintextPassword(password), role=role)
            print(f"  user      {email} ({role.value})")

        today = utcnow().date()
        workshop_ids: list[str] = []
        for name, days, description in _SEED_WORKSHOPS:
            try:
                created = workshops.create(name, (today + timedelta(days=days)).isoformat(), description)
                workshop_ids.append(created.id)
                print(f"  workshop  {name} ({created.date.isoformat()})")
            except Conflict:
                print(f"  workshop  {name} already exists, skipped")

        for index, (name, email, is_academic, course, number, days) in enumerate(_SEED_VOLUNTEERS):
            try:
                volunteer = volunteers.create(
                    Volunteer(
                        name=name,
                        email=email,
                        is_academic=is_academic,
                        course=course,
                        registration_number=number,
                        entry_date=utcnow() - timedelta(days=days),
                    )
                )
            except Conflict:
                print(f"  volunteer {email} already exists, skipped")
                continue
            print(f"  volunteer {email}")
            if workshop_ids:
                volunteers.add_workshop(volunteer.id, workshop_ids[index % len(workshop_ids)])
    finally:
        roster_store.close()
        user_store.close()

    print("\nDone. Log in with one of:")
    for _, email, password, _ in _SEED_USERS[:2]:
        print(f"  {email} / {password}")


def serve(host: str, port: int, reload: bool) -> None:
    import uvicorn

    uvicorn.run("api.main:app", host=host, port=port, reload=reload)


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="ellp",
        description="Volunteer and workshop management API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve
  python main.py serve --port 9000 --reload
  DATABASE_URL=sqlite:///dev.db python main.py seed
        """,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Listening port (default: {settings.port})",
    )
    serve_parser.add_argument("--reload", action="store_true", help="Restart on code changes (development)")

    subparsers.add_parser("seed", help="Create sample users, workshops and volunteers")

    args = parser.parse_args()
    if args.command == "serve":
        serve(args.host, args.port, args.reload)
    elif args.command == "seed":
        seed()
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
