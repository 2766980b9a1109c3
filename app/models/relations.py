# app/models/relations.py

from sqlalchemy.orm import relationship

from .batch import CourseBatch
from .course import Course
from .enrollment import Enrollment
from .manual_payment import ManualPayment
from .payment import Payment
from .review import Review
from .user import User


def setup_relationships():
    """
    Configure all SQLAlchemy relationships between models.
    """

    # --- Catalog ---

    # 1. Course to Batches (One-to-Many), kept in batch order
    Course.batches = relationship(
        "CourseBatch",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="CourseBatch.batch_number",
    )
    CourseBatch.course = relationship("Course", back_populates="batches")

    # --- Enrollment System ---

    # 2. Course / User to Enrollments (One-to-Many)
    Course.enrollments = relationship("Enrollment", back_populates="course")
    Enrollment.course = relationship("Course", back_populates="enrollments")

    User.enrollments = relationship("Enrollment", back_populates="user")
    Enrollment.user = relationship("User", back_populates="enrollments")

    # 3. Payments
    User.payments = relationship(
        "Payment", back_populates="user", order_by="Payment.created_at.desc()"
    )
    Payment.user = relationship("User", back_populates="payments")
    Payment.course = relationship("Course")

    # 4. Manual payment claims
    User.manual_payments = relationship("ManualPayment", back_populates="user")
    ManualPayment.user = relationship("User", back_populates="manual_payments")
    ManualPayment.course = relationship("Course")

    # --- Reviews ---
    Course.reviews = relationship(
        "Review", back_populates="course", cascade="all, delete-orphan"
    )
    Review.course = relationship("Course", back_populates="reviews")
