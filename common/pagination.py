from django.conf import settings
from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Shared pagination behavior for list endpoints.

    Clients can tune page size with `?page_size=` but values are capped by
    `INVENTORY_MAX_PAGE_SIZE` to keep payload sizes predictable.
    """

    page_size_query_param = "page_size"
    max_page_size = getattr(settings, "INVENTORY_MAX_PAGE_SIZE", 200)
