from .tenancy import Company
from .auth import User, SessionToken
from .inventory import Zone, Product, ScannedArticle
from .security import SecurityEvent

__all__ = [
    'Company',
    'User', 'SessionToken',
    'Zone', 'Product', 'ScannedArticle',
    'SecurityEvent',
]
