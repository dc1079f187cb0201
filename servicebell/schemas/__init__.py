from .user import StaffCreate, UserLogin, UserRead, UserRegister, UserWithToken
from .restaurant import RestaurantCreate, RestaurantRead, RestaurantUpdate
from .table import TableCreate, TablePosition, TableRead, TableUpdate
from .table_session import (
    ActiveSessionInfo,
    SessionEndRequest,
    SessionEndResult,
    TableSessionRead,
    TableVerification,
)
from .service_request import ServiceRequestCreate, ServiceRequestRead, ServiceRequestUpdate
from .feedback import FeedbackCreate, FeedbackRead
from .events import EventEnvelope, EventType, as_payload
