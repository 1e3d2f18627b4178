from .errors import field_errors_from
from .auth import normalize_email
