class AppError(Exception):
    """Base class for all feed cache errors."""
    pass


class DomainError(AppError):
    """Base for cache/domain logic errors."""
    pass

class UnknownLifecycleSourceError(DomainError):
    def __init__(self, name: str):
        self.name = name
        self.message = f"Unknown lifecycle source '{name}'."
        super().__init__(self.message)



class InfrastructureError(AppError):
    """Base for errors raised by external collaborators (page producers, host hooks)."""
    pass

class PageFetchError(InfrastructureError):
    def __init__(self, key: str, page=None, detail: str = ""):
        self.key = key
        self.page = page
        what = f"page {page}" if page is not None else "blocked users"
        self.message = f"Could not fetch {what} for bucket '{key}': {detail}"
        super().__init__(self.message)
