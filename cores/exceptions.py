import logging

from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """
    Wraps DRF's default handler so every error reaches the client as
    { "error": "<message>", "code": "<machine code>" }.
    Validation errors keep their field map under "fields".
    """
    response = exception_handler(exc, context)
    if response is None:
        return None

    detail = getattr(exc, 'detail', None)
    code = getattr(exc, 'default_code', 'error')
    if detail is None and isinstance(response.data, dict):
        # Http404 / PermissionDenied from Django are converted by DRF
        detail = response.data.get('detail')

    if isinstance(detail, (dict, list)):
        response.data = {
            "error": "Invalid request data.",
            "code": "invalid",
            "fields": response.data,
        }
    else:
        if detail is not None and hasattr(detail, 'code'):
            code = detail.code
        response.data = {"error": str(detail) if detail is not None else str(exc), "code": code}

    if response.status_code >= 500:
        logger.error(f"API error {response.status_code} ({code}): {response.data['error']}")
    return response
