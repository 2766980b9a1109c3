from .admin import router as admin_router
from .admin_catalog import router as admin_catalog_router
from .checkout import router as checkout_router
from .coupons import router as coupons_router
from .courses import router as courses_router
from .enrollments import payments_router
from .enrollments import router as enrollments_router
from .manual_payments import router as manual_payments_router
from .reviews import router as reviews_router

routes = [
    courses_router,
    checkout_router,
    coupons_router,
    enrollments_router,
    payments_router,
    manual_payments_router,
    reviews_router,
    admin_catalog_router,
    admin_router,
]
