#!/usr/bin/env python3
"""
Database initialization script for the Options Portfolio Tracker.
Run this script to create all database tables.

Usage:
    python init_db.py

Make sure DATABASE_URL environment variable is set.
"""

from app import create_app
from models import db


def init_database():
    """Initialize the database by creating all tables."""
    app = create_app()

    with app.app_context():
        print("Connecting to database...")
        print(f"Database URI: {app.config['SQLALCHEMY_DATABASE_URI'][:50]}...")

        # Create all tables
        db.create_all()

        print("Database tables created successfully!")
        print("\nTables created:")
        for table in db.metadata.sorted_tables:
            print(f"  - {table.name}")


if __name__ == '__main__':
    init_database()
