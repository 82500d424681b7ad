"""Configuration for the circulation portal Flask application."""
import os


class Config:
    """Base configuration.

    Attributes:
        DATABASE (str): Path to the SQLite database file.
        DATABASE_TIMEOUT (float): Seconds to wait for the writer lock before
            a transaction gives up.
        LOG_LEVEL (str): Root logging level name.
        SEED_SAMPLE_DATA (bool): Load the sample rules/members/items on startup.
    """

    DATABASE: str = os.environ.get(
        'LIBRARY_DATABASE',
        os.path.join(os.path.dirname(os.path.abspath(__file__)), 'library.db'),
    )
    DATABASE_TIMEOUT: float = float(os.environ.get('LIBRARY_DB_TIMEOUT', '5'))
    LOG_LEVEL: str = os.environ.get('LIBRARY_LOG_LEVEL', 'INFO')
    SEED_SAMPLE_DATA: bool = os.environ.get('LIBRARY_SEED', '1') == '1'
