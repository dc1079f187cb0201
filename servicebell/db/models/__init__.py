# Importa todos os modelos para que o metadata (e o Alembic) os conheça
from servicebell.db.models.user import User, UserRole
from servicebell.db.models.restaurant import Restaurant
from servicebell.db.models.table import DEFAULT_POSITION, RestaurantTable, TableShape
from servicebell.db.models.table_session import SessionEndReason, TableSession
from servicebell.db.models.service_request import ACTIVE_STATUSES, RequestStatus, RequestType, ServiceRequest
from servicebell.db.models.feedback import Feedback
