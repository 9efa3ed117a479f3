# memorial/services/approvers.py
"""
Approver (admin) accounts: login, bootstrap and account management.

Self-lockout checks live in the access gate (memorial.security.gate),
this module only performs the writes.
"""
import logging
import uuid
from functools import lru_cache
from typing import List, Optional

from sqlalchemy import exists, func, insert, literal, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from memorial.core.errors import ApproverNotFound, BootstrapClosed, DuplicateEmail
from memorial.models.approver import Approver
from memorial.security.passwords import hash_password, verify_password

logger = logging.getLogger(__name__)

@lru_cache()
def _dummy_hash() -> str:
    # verified against when the email is unknown, so both paths cost one PBKDF2 run
    return hash_password(uuid.uuid4().hex)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_approver(db: AsyncSession, approver_id: str) -> Optional[Approver]:
    result = await db.execute(select(Approver).where(Approver.id == approver_id))
    return result.scalars().first()


async def get_active_approver(db: AsyncSession, approver_id: str) -> Optional[Approver]:
    result = await db.execute(
        select(Approver).where(Approver.id == approver_id, Approver.is_active.is_(True))
    )
    return result.scalars().first()


async def _require(db: AsyncSession, approver_id: str) -> Approver:
    approver = await get_approver(db, approver_id)
    if approver is None:
        raise ApproverNotFound()
    return approver


async def list_approvers(db: AsyncSession) -> List[Approver]:
    result = await db.execute(select(Approver).order_by(Approver.created_at, Approver.email))
    return list(result.scalars().all())


async def count_approvers(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(Approver.id)))
    return result.scalar_one()


async def authenticate(db: AsyncSession, email: str, password: str) -> Optional[Approver]:
    result = await db.execute(select(Approver).where(Approver.email == normalize_email(email)))
    approver = result.scalars().first()

    if approver is None:
        verify_password(password, _dummy_hash())
        return None
    if not verify_password(password, approver.password_hash):
        return None
    if not approver.is_active:
        return None
    return approver


async def create_approver(db: AsyncSession, name: str, email: str, password: str) -> Approver:
    approver = Approver(
        name=name.strip(),
        email=normalize_email(email),
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(approver)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateEmail()
    await db.refresh(approver)
    logger.info("Created approver %s", approver.id)
    return approver


async def bootstrap_first_approver(db: AsyncSession, name: str, email: str, password: str) -> Approver:
    """
    Create the first approver, only while the table is empty.

    The emptiness check and the insert are one statement
    (INSERT ... SELECT ... WHERE NOT EXISTS), so concurrent calls cannot
    both succeed.
    """
    if await count_approvers(db) > 0:
        raise BootstrapClosed("Approvers already exist. Use the dashboard to add more.")

    approver_id = str(uuid.uuid4())
    candidate = select(
        literal(approver_id),
        literal(name.strip()),
        literal(normalize_email(email)),
        literal(hash_password(password)),
        literal(True),
    ).where(~exists(select(Approver.id).correlate(None)))

    result = await db.execute(
        insert(Approver).from_select(
            ["id", "name", "email", "password_hash", "is_active"],
            candidate,
        )
    )
    await db.commit()
    if result.rowcount != 1:
        raise BootstrapClosed("Approvers already exist. Use the dashboard to add more.")

    logger.warning("Bootstrapped first approver %s", approver_id)
    return await _require(db, approver_id)


async def set_active(db: AsyncSession, approver_id: str, active: bool) -> Approver:
    approver = await _require(db, approver_id)
    approver.is_active = active
    db.add(approver)
    await db.commit()
    await db.refresh(approver)
    logger.info("Approver %s %s", approver_id, "reactivated" if active else "deactivated")
    return approver


async def delete_approver(db: AsyncSession, approver_id: str) -> None:
    # Messages keep their approved_by_approver_id; it renders as "unknown"
    approver = await _require(db, approver_id)
    await db.delete(approver)
    await db.commit()
    logger.info("Deleted approver %s", approver_id)


async def change_password(db: AsyncSession, approver_id: str, password: str) -> Approver:
    approver = await _require(db, approver_id)
    approver.password_hash = hash_password(password)
    db.add(approver)
    await db.commit()
    logger.info("Password changed for approver %s", approver_id)
    return approver
