# context_engine/core/exceptions.py
from fastapi import HTTPException

class CustomHTTPException(HTTPException):
    def __init__(self, status_code: int, detail: str, error_code: str = None):
        super().__init__(status_code=status_code, detail=detail)
        self.error_code = error_code

class SourceUnavailableException(Exception):
    """Raised when the content source is unconfigured or unreachable"""
    pass

class ContentFetchException(Exception):
    """Exception raised while fetching entries from the content source"""
    pass

class ScoringException(Exception):
    """Exception raised while scoring a candidate batch"""
    pass

class SearchCancelledException(Exception):
    """Raised when the caller abandons a search between scoring steps"""
    pass

class ServiceUnavailableException(CustomHTTPException):
    def __init__(self, detail: str = "Service temporarily unavailable"):
        super().__init__(status_code=503, detail=detail, error_code="SERVICE_UNAVAILABLE")
