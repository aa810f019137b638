"""Application exceptions and app-level error handlers"""
import logging
from werkzeug.exceptions import HTTPException

from app import db
from app.utils.responses import failure

logger = logging.getLogger(__name__)

class ApiError(Exception):
    """Raised from request handlers to return an error envelope"""

    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status

class NotFoundError(ApiError):
    def __init__(self, message='Not found'):
        super().__init__(message, 404)

class IntegrationError(Exception):
    """Base class for failures talking to a third-party API"""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

class LoadBoardError(IntegrationError):
    pass

class PayPalError(IntegrationError):
    pass

class GeocodingError(IntegrationError):
    pass

class DocumentAnalysisError(IntegrationError):
    pass

class SmsError(IntegrationError):
    pass

class EmailError(IntegrationError):
    pass

class StorageError(IntegrationError):
    pass

class RpcError(Exception):
    """A remote stored procedure failed"""

    def __init__(self, name, message):
        super().__init__(f'{name}: {message}')
        self.name = name
        self.message = message

def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(e):
        return failure(e.message, e.status)

    @app.errorhandler(IntegrationError)
    def handle_integration_error(e):
        app.logger.error(f'{type(e).__name__}: {e.message}')
        return failure(e.message, 502)

    @app.errorhandler(RpcError)
    def handle_rpc_error(e):
        app.logger.error(f'RPC {e.name} failed: {e.message}')
        return failure(e.message, 500)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return failure(e.description, e.code)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        db.session.rollback()
        logger.exception('Unhandled error')
        return failure('Internal server error', 500)
