# Companion gate scanner client

from saffeh.scanner.client import ScannerClient   # noqa
from saffeh.scanner.tokens import ScanThrottle, extract_qr_token, is_valid_qr_token   # noqa
