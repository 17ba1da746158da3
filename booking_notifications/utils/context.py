from rest_framework.exceptions import PermissionDenied


def get_tenant_context(request):
    return {
        'tenant_id': getattr(request, 'tenant_id', None),
    }


def require_tenant_id(request):
    tenant_id = get_tenant_context(request)['tenant_id']
    if not tenant_id:
        raise PermissionDenied("X-Tenant-ID header is required.")
    return tenant_id
