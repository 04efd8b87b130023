import logging
import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL")

logger = logging.getLogger(__name__)

_connect_args = {'check_same_thread': False} if DATABASE_URL and DATABASE_URL.startswith('sqlite') else {}

engine = create_engine(DATABASE_URL, echo=config.SQL_ECHO, connect_args=_connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scheduling_schema_checked = False

SCHEDULING_INDEXES = [
    ('availability', 'CREATE INDEX IF NOT EXISTS idx_availability_instructor_date ON availability(instructor_id, date)'),
    ('appointments', 'CREATE INDEX IF NOT EXISTS idx_appointments_file_date ON appointments(file_id, date)'),
    ('files', 'CREATE INDEX IF NOT EXISTS idx_files_instructor ON files(instructor_id)'),
    ('files', 'CREATE INDEX IF NOT EXISTS idx_files_vehicle ON files(vehicle_id)'),
    ('files', 'CREATE INDEX IF NOT EXISTS idx_files_student ON files(student_id)'),
]


def ensure_scheduling_schema(bind=None) -> None:
    global _scheduling_schema_checked

    if _scheduling_schema_checked:
        return

    with _schema_lock:
        if _scheduling_schema_checked:
            return

        target = bind or engine
        existing_tables = set(inspect(target).get_table_names())

        with target.begin() as connection:
            for table_name, statement in SCHEDULING_INDEXES:
                if table_name in existing_tables:
                    connection.execute(text(statement))

        logger.info('Scheduling indexes verified for tables: %s', ', '.join(sorted(existing_tables)))
        _scheduling_schema_checked = True
