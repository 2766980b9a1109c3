"""
Application initialization module
Handles initial setup tasks like registering admins and loading the catalog
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.admin import Admin
from app.schemas.course import CourseCreate
from app.services.course import CourseService

logger = logging.getLogger(__name__)


def init_admins(db: Session) -> int:
    """
    Make sure every address in ``ADMIN_EMAILS`` has a verified admin row.

    Admins sign in through the identity provider like everyone else; the row
    only marks the email as allowed into the back office.

    Returns:
        Number of admin rows created
    """
    created = 0
    try:
        for email in settings.admin_emails:
            existing = db.query(Admin).filter(Admin.email == email).first()
            if existing:
                continue

            db.add(
                Admin(
                    name=settings.admin_default_name,
                    email=email,
                    is_verified=True,
                    level=999,
                )
            )
            created += 1

        db.commit()
    except Exception as e:
        logger.error(f"❌ Failed to initialize admins: {e}")
        db.rollback()
        raise

    if created:
        logger.info(f"✅ Registered {created} admin account(s) from ADMIN_EMAILS")
    elif not settings.admin_emails:
        logger.warning("⚠️  ADMIN_EMAILS is empty; the admin endpoints are unreachable")
    return created


def seed_catalog(db: Session, source: Union[str, Path, List[Dict]]) -> Dict[str, int]:
    """
    Load courses and their batches from a JSON file (or already parsed list).

    Existing courses are left as they are; batches missing from an existing
    course are added.
    """
    if isinstance(source, (str, Path)):
        with open(source, encoding="utf-8") as f:
            data = json.load(f)
    else:
        data = source
    if isinstance(data, dict):
        data = data.get("courses", [])

    stats = {"courses_created": 0, "batches_created": 0, "skipped": 0}

    for raw in data:
        try:
            course_in = CourseCreate.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Skipping invalid course entry {raw.get('id')!r}: {e}")
            stats["skipped"] += 1
            continue

        service = CourseService(db)
        course = service.get_course(course_in.id)
        if course is None:
            service.create_course(course_in)
            stats["courses_created"] += 1
            stats["batches_created"] += len(course_in.batches)
            continue

        existing = {batch.batch_number for batch in course.batches}
        for batch_in in course_in.batches:
            if batch_in.batch_number not in existing:
                service.add_batch(course_in.id, batch_in)
                stats["batches_created"] += 1

    logger.info(
        f"✅ Catalog seeded: {stats['courses_created']} courses, "
        f"{stats['batches_created']} batches, {stats['skipped']} skipped"
    )
    return stats


def initialize_application(db: Session) -> None:
    """
    Run all application initialization tasks.

    Args:
        db: Database session
    """
    logger.info("🚀 Starting application initialization...")

    init_admins(db)

    logger.info("✅ Application initialization completed!")
