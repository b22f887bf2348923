"""
Timeouts for calls to the FBR digital invoicing gateway.

A post that times out leaves the remote outcome unknown, so read timeouts are
generous: the authority is allowed to finish recording the invoice.
"""

# HTTP timeouts towards FBR (seconds)
FBR_CONNECT_TIMEOUT = 10          # Establishing the TLS connection
FBR_VALIDATE_READ_TIMEOUT = 30    # validateinvoicedata
FBR_POST_READ_TIMEOUT = 60        # postinvoicedata
FBR_HEALTHCHECK_TIMEOUT = 5       # check_connection()

# Backoff for the optional validation retry
FBR_VALIDATE_RETRY_MIN_WAIT = 1
FBR_VALIDATE_RETRY_MAX_WAIT = 10


def validate_timeout() -> tuple:
    """(connect, read) tuple for requests."""
    return (FBR_CONNECT_TIMEOUT, FBR_VALIDATE_READ_TIMEOUT)


def post_timeout() -> tuple:
    return (FBR_CONNECT_TIMEOUT, FBR_POST_READ_TIMEOUT)
