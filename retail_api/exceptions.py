
class ApplicationError(Exception):
    """Base class for application-specific errors."""
    pass

class NotFoundError(ApplicationError):
    """Raised when an entity, blob or stored file does not exist."""
    pass

class DuplicateKeyError(ApplicationError):
    """Raised when inserting an entity whose PartitionKey/RowKey already exists."""
    pass

class PreconditionFailedError(ApplicationError):
    """Raised when an update carries an ETag that no longer matches the stored entity."""
    pass

class BusinessRuleError(ApplicationError):
    """Raised when a request violates a business rule (price, stock, selection)."""
    pass

class ConfigurationError(ApplicationError):
    """Raised at startup when required configuration is missing."""
    pass

class StorageError(ApplicationError):
    """Raised for Azure Storage failures not specifically handled."""
    def __init__(self, message="A storage error occurred.", original_exception=None):
        super().__init__(message)
        self.original_exception = original_exception
