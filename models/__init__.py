from models.customer import Customer
from models.activity_log import ActivityLog

__all__ = ["Customer", "ActivityLog"]
