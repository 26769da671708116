"""Database initialization utilities for Lashwa"""
import os
from datetime import datetime


def create_admin_user(db, bcrypt, logger):
    """Create the support/moderation admin if it does not exist yet"""
    # Import here to avoid circular imports
    from models.user import User

    admin_email = os.environ.get('ADMIN_EMAIL', 'admin@lashwa.com').strip().lower()
    admin = User.query.filter_by(email=admin_email).first()

    if admin:
        logger.info(f"Admin user already exists: {admin_email}")
        return admin

    logger.info("Creating admin user from db_init...")
    now = datetime.utcnow()
    admin = User(
        email=admin_email,
        password_hash=bcrypt.generate_password_hash(
            os.environ.get('ADMIN_PASSWORD', 'Admin123!')
        ).decode('utf-8'),
        first_name='Lashwa',
        last_name='Support',
        looking_for='Support',
        role='admin',
        is_active=True,
        visibility='public',
        created_at=now,
        last_active=now
    )
    db.session.add(admin)
    db.session.commit()
    logger.info(f"Admin user created: {admin_email}")
    return admin
