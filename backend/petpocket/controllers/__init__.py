from .appointment_controller import appointment_bp
from .auth_controller import auth_bp
from .health_controller import health_bp
from .order_controller import order_bp
from .owner_controller import owner_bp
from .pet_controller import pet_bp
from .product_controller import product_bp
from .service_controller import service_bp
from .stats_controller import stats_bp
from .user_controller import user_bp

ALL_BLUEPRINTS = (
    auth_bp,
    user_bp,
    owner_bp,
    pet_bp,
    product_bp,
    service_bp,
    order_bp,
    appointment_bp,
    stats_bp,
    health_bp,
)

__all__ = [
    "ALL_BLUEPRINTS",
    "appointment_bp",
    "auth_bp",
    "health_bp",
    "order_bp",
    "owner_bp",
    "pet_bp",
    "product_bp",
    "service_bp",
    "stats_bp",
    "user_bp",
]
