class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class DataIntegrityError(NotFoundError):
    """A financial record would reference an entity that does not exist."""


class CatalogUnavailableError(AppError):
    pass
