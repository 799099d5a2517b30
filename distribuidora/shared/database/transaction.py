# distribuidora/shared/database/transaction.py
from contextlib import contextmanager
from sqlalchemy.orm import Session
import logging

from distribuidora.core.exceptions import DomainError

logger = logging.getLogger(__name__)

@contextmanager
def atomic(db: Session, operation: str):
    """
    Una operación = una transacción.

    Commit único al salir del bloque; cualquier error (de negocio o de
    sistema) hace rollback completo y se propaga.
    """
    try:
        yield
        db.commit()
        logger.info(f"Transacción completada - {operation}")
    except DomainError as e:
        logger.error(f"Error de negocio en {operation}: {'; '.join(e.errors)}")
        db.rollback()
        raise
    except Exception:
        logger.exception(f"Error en transacción: {operation}")
        db.rollback()
        raise
