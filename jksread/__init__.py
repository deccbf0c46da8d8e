from .util import *
from .jks import *
from .x509 import Certificate
from .sun_crypto import DecryptedKey, decrypt_key
