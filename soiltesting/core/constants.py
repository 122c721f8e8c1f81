"""Common application-wide constants."""

# Prefix of every soil-testing QR credential identifier
CREDENTIAL_PREFIX = "ST"
CREDENTIAL_RANDOM_LENGTH = 6
CREDENTIAL_TOKEN_COUNT = 5

QR_IMAGE_SIZE = "300x300"
QR_IMAGE_MARGIN = 10

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

ROLE_ADMIN = "admin"
ROLE_FARMER = "farmer"
ROLE_FIELD_OFFICER = "field_officer"


__all__ = [
    "CREDENTIAL_PREFIX",
    "CREDENTIAL_RANDOM_LENGTH",
    "CREDENTIAL_TOKEN_COUNT",
    "QR_IMAGE_SIZE",
    "QR_IMAGE_MARGIN",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "ROLE_ADMIN",
    "ROLE_FARMER",
    "ROLE_FIELD_OFFICER",
]
