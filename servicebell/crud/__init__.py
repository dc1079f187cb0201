from .crud_user import user
from .crud_restaurant import restaurant
from .crud_table import table
from .crud_table_session import table_session
from .crud_request import service_request
from .crud_feedback import feedback
