from typing import Optional, Any

class IcebreakerError(Exception):
    """
    Base exception for the Icebreaker data service.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

class ResourceNotFoundError(IcebreakerError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)

class UserNotFoundError(ResourceNotFoundError):
    """
    Raised when an update needs an existing user record and there is none.
    """
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found", details={"user_id": user_id})

class DataStoreError(IcebreakerError):
    """
    Raised when the document store fails on a path that cannot degrade gracefully.
    """
    def __init__(self, message: str = "Data store error", details: Optional[Any] = None, code: str = "DATA_STORE_ERROR"):
        super().__init__(message, code=code, status_code=503, details=details)

class DataStoreInitializationError(DataStoreError):
    """
    Raised to every caller waiting on a failed data store setup.
    """
    def __init__(self, message: str = "Data store initialization failed", details: Optional[Any] = None):
        super().__init__(message, details=details, code="DATA_STORE_INIT_FAILED")
