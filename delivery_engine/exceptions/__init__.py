"""Custom exceptions for the delivery engine."""

class EngineError(Exception):
    """Base exception for all engine errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class ValidationError(EngineError):
    """Raised when an engine input is malformed (quantities, prices, coordinates)."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)

class InvalidPolygonDescription(EngineError):
    """Raised when a geofence description cannot be parsed as structured data."""
    def __init__(self, message="La geocerca no tiene un formato válido", payload=None):
        super().__init__(message, 422, payload)

class AmbiguousBundleMembership(EngineError):
    """Raised when a cart line matches more than one active bundle special."""
    def __init__(self, line_id, promotion_ids):
        ids = ', '.join(str(pid) for pid in promotion_ids)
        message = f"El item {line_id} pertenece a más de un combinado activo: {ids}"
        super().__init__(message, 409, {'line_id': line_id, 'promotion_ids': list(promotion_ids)})
        self.line_id = line_id
        self.promotion_ids = tuple(promotion_ids)
