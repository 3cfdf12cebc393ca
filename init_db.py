# init_db.py
from dotenv import load_dotenv

load_dotenv()

from database import setup_database_standalone


def main():
    print("Initializing gallery/torrent schema...")
    setup_database_standalone()
    print("Database initialization complete.")


if __name__ == "__main__":
    main()
