from typing import Optional

# message is shown to the caller; diagnostic goes to the X-Auth-Error header
# for operators and must never carry a secret or a secret hash
class GatewayError(Exception):
    code = "InternalError"
    http_status = 500
    default_message = "internal error"

    def __init__(self, message: Optional[str] = None, diagnostic: Optional[str] = None) -> None:
        self.message = message or self.default_message
        self.diagnostic = diagnostic
        super().__init__(self.message)

class InvalidArgument(GatewayError):
    code = "InvalidArgument"
    http_status = 400
    default_message = "invalid argument"

# -- 401: all three look the same to the caller ------------------------------

class CredentialError(GatewayError):
    code = "Unauthorized"
    http_status = 401
    default_message = "invalid credentials"

    def __init__(self, diagnostic: Optional[str] = None) -> None:
        super().__init__(diagnostic=diagnostic)

class CredentialMissing(CredentialError):
    pass

class CredentialMalformed(CredentialError):
    pass

class CredentialInvalid(CredentialError):
    pass

# -- 403 ---------------------------------------------------------------------

class InsufficientRole(GatewayError):
    code = "InsufficientRole"
    http_status = 403
    default_message = "insufficient permissions"

class BucketScopeMismatch(GatewayError):
    code = "BucketScopeMismatch"
    http_status = 403
    default_message = "access denied to this bucket"

# -- 404 ---------------------------------------------------------------------

class NotFound(GatewayError):
    code = "NotFound"
    http_status = 404
    default_message = "not found"

class BucketNotFound(NotFound):
    default_message = "bucket not found"

class ObjectNotFound(NotFound):
    default_message = "object not found"

class AccessKeyNotFound(NotFound):
    default_message = "access key not found"

# -- 409 ---------------------------------------------------------------------

class Conflict(GatewayError):
    code = "Conflict"
    http_status = 409
    default_message = "conflict"

class BucketAlreadyExists(Conflict):
    default_message = "bucket already exists"

class ObjectAlreadyExists(Conflict):
    default_message = "object already exists"

class BucketNotEmpty(Conflict):
    default_message = "bucket not empty"

# -- 500 ---------------------------------------------------------------------

class IntegrityViolation(GatewayError):
    code = "IntegrityViolation"
    default_message = "invalid stored path"

class StorageFailure(GatewayError):
    code = "StorageFailure"
    default_message = "internal error"
