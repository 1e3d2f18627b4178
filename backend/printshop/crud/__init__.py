from . import crud_user
from . import crud_order
from . import crud_message
