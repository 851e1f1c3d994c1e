"""Seed version 1 of each canonical platform policy when none has been published yet."""
import logging

from sqlalchemy.orm import Session
from lendit.models.policy_document import PolicyDocument
from lendit.services.policy import (
    INSURANCE_POLICY_SLUG,
    OWNER_RESPONSIBILITIES_SLUG,
    RENTER_RESPONSIBILITIES_SLUG,
    publish_policy,
)

logger = logging.getLogger("uvicorn.error")

DISCLAIMER = (
    "This policy is an operational framework only. It is not legal advice. "
    "All parties should seek independent legal or insurance advice."
)

POLICY_TEMPLATES = {
    INSURANCE_POLICY_SLUG: (
        "Insurance & Damage Policy",
        "How bonds, insurance and damage claims work for every rental.",
        "1. Purpose of this Policy\n"
        "Defines risk allocation, insurance expectations and damage responsibilities for all rentals "
        "conducted through Lendit.\n\n"
        "2. Platform Role\n"
        "Lendit is a marketplace facilitator only. It is not an insurer, broker or legal advisor.\n\n"
        "3. Owner Insurance\n"
        "Owners must hold insurance covering their equipment while it is hired out.\n\n"
        "4. Renter Responsibility\n"
        "Renters are responsible for loss or damage during the rental period, up to the bond amount "
        "and any excess under the owner's policy.\n\n"
        "5. Claims & Disputes\n"
        "Damage must be recorded at the return inspection. Disputes are reviewed against the policy "
        "version accepted at booking.\n\n" + DISCLAIMER
    ),
    RENTER_RESPONSIBILITIES_SLUG: (
        "Renter Responsibilities",
        "What renters agree to when hiring equipment.",
        "Renters must hold a valid licence for the equipment class, operate it safely, "
        "and return it clean, fuelled and on time.\n\n" + DISCLAIMER
    ),
    OWNER_RESPONSIBILITIES_SLUG: (
        "Owner Responsibilities",
        "What owners agree to when listing equipment.",
        "Owners must describe equipment accurately, keep it serviced and roadworthy, "
        "and complete pickup and return inspections.\n\n" + DISCLAIMER
    ),
}


def seed_policies(db: Session) -> None:
    for slug, (title, summary, content) in POLICY_TEMPLATES.items():
        if db.query(PolicyDocument.id).filter(PolicyDocument.slug == slug).first():
            continue
        doc = publish_policy(db, slug, content, title=title, short_summary=summary)
        logger.info("Seeded policy %s v%d", slug, doc.version)
