from .tenancy import Tenant, User, SessionToken
from .jobs import JobCard, JobCardTask
from .inventory import InventoryItem, InventoryAllocation, InventoryTransaction
from .estimates import Estimate, EstimateItem

__all__ = [
    'Tenant', 'User', 'SessionToken',
    'JobCard', 'JobCardTask',
    'InventoryItem', 'InventoryAllocation', 'InventoryTransaction',
    'Estimate', 'EstimateItem',
]
