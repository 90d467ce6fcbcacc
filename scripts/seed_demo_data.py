"""Seed script for roles, a superadmin and a demo issuer."""
from __future__ import annotations

import logging
import os

from sqlalchemy import select
from sqlalchemy.orm import Session

from transfer_agent.api.routes.auth import hash_password
from transfer_agent.db.session import SessionLocal, engine
from transfer_agent.models import Base, Issuer, IssuerStatus, Role, Security, User, UserStatus
from transfer_agent.services.roles import ROLE_HIERARCHY

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_ISSUER = "demo-holdings"
DEMO_CUSIP = "000000AA1"


def seed(session: Session) -> None:
    """Seed the role table, an administrator and one active demo issuer."""

    existing_roles = set(session.scalars(select(Role.role_name)))
    for role_name in ROLE_HIERARCHY:
        if role_name in existing_roles:
            continue
        session.add(Role(role_name=role_name, display_name=role_name.replace("_", " ").title()))
        logger.info("Added role %s", role_name)

    admin_email = os.environ.get("SEED_ADMIN_EMAIL", "admin@demo.local")
    admin = session.scalar(select(User).where(User.email == admin_email))
    if admin is None:
        session.add(
            User(
                email=admin_email,
                name="Registry Admin",
                hashed_password=hash_password(os.environ.get("SEED_ADMIN_PASSWORD", "changeme")),
                is_super_admin=True,
                status=UserStatus.ACTIVE,
            )
        )
        logger.info("Added superadmin %s", admin_email)
    else:
        logger.info("User %s already exists", admin_email)

    issuer = session.scalar(select(Issuer).where(Issuer.issuer_name == DEMO_ISSUER))
    if issuer is None:
        issuer = Issuer(issuer_name=DEMO_ISSUER, display_name="Demo Holdings Inc.", status=IssuerStatus.ACTIVE)
        session.add(issuer)
        session.flush()
        session.add(Security(issuer_id=issuer.id, cusip=DEMO_CUSIP, issue_name="Common Stock", class_name="Class A"))
        logger.info("Created issuer %s", DEMO_ISSUER)
    else:
        logger.info("Issuer %s already exists", DEMO_ISSUER)


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        seed(session)
        session.commit()


if __name__ == "__main__":
    main()
