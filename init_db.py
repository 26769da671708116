"""Initialize database for the Lashwa dating app"""
import os
import sys

# Add current directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# Import app and database
from lashwa_backend import initialize_database, logger


if __name__ == '__main__':
    logger.info("Creating database tables (preserving existing data)...")
    initialize_database()
