"""HTTP blueprints"""

from .account_bp import bp as account_bp
from .catalog_bp import bp as catalog_bp

__all__ = ["account_bp", "catalog_bp"]
