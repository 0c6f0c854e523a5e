from slowapi import Limiter
from slowapi.util import get_remote_address


# Requests are keyed by client address; there is no authenticated user to key on
limiter = Limiter(key_func=get_remote_address)
