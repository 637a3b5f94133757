import os

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Settings:
    # -------------------------------------------------------
    # Storage
    # -------------------------------------------------------
    FAMILY_TREE_DB: str = os.getenv("FAMILY_TREE_DB", "./family_tree.db")

    # -------------------------------------------------------
    # Viewport (pixels)
    # -------------------------------------------------------
    VIEWPORT_WIDTH: int = int(os.getenv("VIEWPORT_WIDTH", 1440))
    VIEWPORT_HEIGHT: int = int(os.getenv("VIEWPORT_HEIGHT", 900))

    # Fixed header covering the top of the window
    HEADER_HEIGHT: int = int(os.getenv("HEADER_HEIGHT", 80))

    # Nodes are never centred closer than this to the top edge
    MIN_TOP_MARGIN: int = int(os.getenv("MIN_TOP_MARGIN", 100))

    # -------------------------------------------------------
    # Logging
    # -------------------------------------------------------
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING")


# Single instance that is imported everywhere
settings = Settings()
