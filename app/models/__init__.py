"""
Models package initialization
Import all models and setup relationships
"""

from .admin import Admin
from .audit_log import AuditLog
from .batch import CourseBatch
from .coupon import Coupon, CouponUsage
from .course import Course
from .email_log import EmailLog
from .enrollment import Enrollment
from .manual_payment import ManualPayment
from .payment import Payment

# Import and setup relationships
from .relations import setup_relationships
from .review import Review
from .user import User

# Setup all relationships after models are imported
setup_relationships()

# Make models available at package level
__all__ = [
    "Admin",
    "AuditLog",
    "Coupon",
    "CouponUsage",
    "Course",
    "CourseBatch",
    "EmailLog",
    "Enrollment",
    "ManualPayment",
    "Payment",
    "Review",
    "User",
]
