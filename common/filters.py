from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import IntegerField, Q
from django.utils.dateparse import parse_date, parse_datetime
from rest_framework.exceptions import ValidationError
from rest_framework.filters import BaseFilterBackend


class QueryParamFilterBackend(BaseFilterBackend):
    """Translate list query parameters into ORM filters.

    Views opt in by declaring:

    * ``query_filter_fields``: mapping of query param -> model lookup. A comma
      separated value becomes an ``__in`` lookup.
    * ``query_range_fields``: mapping of base name -> model field; accepts
      ``<name>_min`` / ``<name>_max``.
    * ``query_date_field``: field used by ``start_date`` / ``end_date``
      (``created_at`` by default).
    * ``query_search_fields``: text fields matched case-insensitively by
      ``search``.
    * ``query_ordering_fields``: fields accepted by ``sort`` (``-`` prefix for
      descending) and ``query_default_ordering``.
    """

    def filter_queryset(self, request, queryset, view):
        params = request.query_params
        lookups = {}

        for param, lookup in getattr(view, "query_filter_fields", {}).items():
            raw = params.get(param)
            if raw in (None, ""):
                continue
            if "," in raw:
                lookups[f"{lookup}__in"] = [value.strip() for value in raw.split(",") if value.strip()]
            else:
                lookups[lookup] = raw

        for name, field in getattr(view, "query_range_fields", {}).items():
            for suffix, operator in (("_min", "gte"), ("_max", "lte")):
                raw = params.get(f"{name}{suffix}")
                if raw in (None, ""):
                    continue
                lookups[f"{field}__{operator}"] = self._range_value(queryset.model, field, raw, f"{name}{suffix}")

        date_field = getattr(view, "query_date_field", "created_at")
        start_date = params.get("start_date")
        end_date = params.get("end_date")
        if start_date:
            lookups.update(self._date_lookup(date_field, "gte", start_date, "start_date"))
        if end_date:
            lookups.update(self._date_lookup(date_field, "lte", end_date, "end_date"))

        try:
            queryset = queryset.filter(**lookups)
        except DjangoValidationError as exc:
            raise ValidationError({"filters": exc.messages})
        except (TypeError, ValueError) as exc:
            raise ValidationError({"filters": [str(exc)]})

        search = params.get("search", "").strip()
        search_fields = getattr(view, "query_search_fields", [])
        if search and search_fields:
            condition = Q()
            for field in search_fields:
                condition |= Q(**{f"{field}__icontains": search})
            queryset = queryset.filter(condition)

        return queryset.order_by(*self._ordering(params.get("sort"), view))

    def _range_value(self, model, field, raw, param):
        try:
            value = Decimal(raw)
        except InvalidOperation:
            raise ValidationError({param: "Must be a number."})
        if not value.is_finite():
            raise ValidationError({param: "Must be a finite number."})

        model_field = model._meta.get_field(field) if "__" not in field else None
        if isinstance(model_field, IntegerField):
            # Integer columns would silently truncate 1.5 to 1.
            if value != value.to_integral_value():
                raise ValidationError({param: "Must be a whole number."})
            return int(value)
        return value

    def _date_lookup(self, field, operator, raw, param):
        try:
            dt = parse_datetime(raw)
            if dt:
                return {f"{field}__{operator}": dt}
            day = parse_date(raw)
        except ValueError:
            raise ValidationError({param: "Not a valid calendar date."})
        if day:
            return {f"{field}__date__{operator}": day}
        raise ValidationError({param: "Must be an ISO 8601 date or datetime."})

    def _ordering(self, raw, view):
        allowed = set(getattr(view, "query_ordering_fields", []))
        default = list(getattr(view, "query_default_ordering", ["-created_at"]))
        if not raw:
            return default

        ordering = []
        for term in raw.split(","):
            term = term.strip()
            if not term:
                continue
            if term.lstrip("-") not in allowed:
                raise ValidationError({"sort": f"Cannot sort by '{term.lstrip('-')}'."})
            ordering.append(term)
        return ordering or default
