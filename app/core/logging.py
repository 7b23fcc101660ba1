"""
Configuración de logging del proceso.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configura el root logger una sola vez al iniciar la aplicación."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("passlib").setLevel(logging.ERROR)
