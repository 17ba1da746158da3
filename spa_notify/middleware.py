import logging
import uuid

logger = logging.getLogger('booking_notifications.api')

TENANT_HEADER = 'HTTP_X_TENANT_ID'


class TenantContextMiddleware:
    """
    Attaches the calling tenant to the request.

    Authentication happens upstream (session/OIDC at the gateway); by the time a
    request reaches this service the gateway has resolved the tenant and passes
    it in the X-Tenant-ID header. Malformed values are treated as absent.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.tenant_id = None
        raw = request.META.get(TENANT_HEADER)
        if raw:
            try:
                request.tenant_id = uuid.UUID(str(raw).strip())
            except ValueError:
                logger.warning(f"Ignoring malformed tenant header: {raw!r}")
        return self.get_response(request)
