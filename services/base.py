"""Base services container for dependency injection."""

from config import Config
from db.manager import DatabaseManager


class Services:
    """Container for all application services.

    This class provides a centralized way to access all services and makes
    it easy to inject mock services for testing.

    Args:
        config: Application configuration object.
        db_manager: Optional database manager for testing. If provided, config is ignored.
    """

    def __init__(self, config: Config, db_manager=None):
        self.config = config
        self.db_manager = db_manager or DatabaseManager(config)

        # Lazy import to avoid circular dependencies
        from services.store import KeyValueStore
        from services.expenses import ExpenseService
        from services.subcategories import SubcategoryService
        from services.audit import AuditService
        from services.reclassifications import ReclassificationService

        self.store = KeyValueStore(self.db_manager)
        self.expenses = ExpenseService(self.store)
        self.subcategories = SubcategoryService(self.store)
        self.audit = AuditService(self.store)
        self.reclassifications = ReclassificationService(self.expenses, self.audit)
