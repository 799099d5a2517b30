# distribuidora/config/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from .settings import settings

engine_kwargs = {
    "pool_pre_ping": True,
    "echo": settings.debug
}
connect_args = {}

if settings.is_sqlite:
    # SQLite (tests / desarrollo local): una conexión compartida entre hilos
    connect_args["check_same_thread"] = False
else:
    engine_kwargs["pool_recycle"] = 300
    engine_kwargs["pool_size"] = settings.db_pool_size
    engine_kwargs["max_overflow"] = settings.db_max_overflow
    # Los SELECT FOR UPDATE no esperan indefinidamente
    connect_args["options"] = f"-c lock_timeout={settings.db_lock_timeout_ms}"

# Agregar SSL para producción en Render
if "render" in settings.database_url:
    connect_args["sslmode"] = "require"

if connect_args:
    engine_kwargs["connect_args"] = connect_args

# Create engine
engine = create_engine(
    settings.database_url_with_ssl,
    **engine_kwargs
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()

# Database dependency
def get_db():
    """Sesión por request; cada operación de escritura hace su propio commit"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
