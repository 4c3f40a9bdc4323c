#!/usr/bin/env python3
"""Development server runner for the writer ledger API."""

import os
from pathlib import Path

from dotenv import load_dotenv


def setup_environment():
    """Load .env and default the Flask development settings."""
    env_file = Path(__file__).parent / '.env'
    if env_file.exists():
        load_dotenv(env_file)
        print(f"Loaded environment from {env_file}")
    else:
        print(f"No .env file found at {env_file}")

    os.environ.setdefault('FLASK_APP', 'wms:create_app')
    os.environ.setdefault('FLASK_DEBUG', '1')


def main():
    setup_environment()

    from wms import create_app

    app = create_app()

    print("=" * 60)
    print("Starting writer ledger development server")
    print("=" * 60)
    print(f"Database: {app.config['SQLALCHEMY_DATABASE_URI']}")
    print("API: http://localhost:5000/api")
    print("\nTo create accounts and demo data, run in another terminal:")
    print("   flask --app wms:create_app seed admin --password <password>")
    print("   flask --app wms:create_app seed demo")
    print("=" * 60)

    try:
        app.run(host='0.0.0.0', port=5000, debug=True, use_reloader=True)
    except KeyboardInterrupt:
        print("\nDevelopment server stopped by user")


if __name__ == "__main__":
    main()
