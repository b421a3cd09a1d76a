# backend/schedule_api/__init__.py
"""
Package init: load environment variables from a .env file if present.
This runs before the db and auth modules read their configuration with os.getenv.
"""

from dotenv import load_dotenv

load_dotenv()
