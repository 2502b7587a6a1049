from .auth import Profile, SessionToken
from .purchasing import PurchaseSheet, BookRequest, PriceComparison, FinalizedPurchase
from .history import PurchaseHistory, BookRequestHistory, FinalizedPurchaseHistory
from .activity import ActivityLog
from .settings import SystemSettings

__all__ = [
    'Profile', 'SessionToken',
    'PurchaseSheet', 'BookRequest', 'PriceComparison', 'FinalizedPurchase',
    'PurchaseHistory', 'BookRequestHistory', 'FinalizedPurchaseHistory',
    'ActivityLog',
    'SystemSettings',
]
