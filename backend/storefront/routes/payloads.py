# Overview: Request-body helpers shared by the order and booking routes.

import json

from flask import request

from ..errors import ValidationError


def read_checkout_payload(form_field: str, file_field: str = "paymentProof"):
    """
    Return (data, uploaded_file) for a checkout request.

    Accepts a JSON body, or multipart form data carrying the payload as a
    JSON string in ``form_field`` plus an optional file in ``file_field``.
    """
    if request.mimetype == "multipart/form-data":
        raw = request.form.get(form_field)
        if not raw:
            raise ValidationError(f"{form_field} is required", {"field": form_field})
        try:
            data = json.loads(raw)
        except ValueError:
            raise ValidationError(f"{form_field} must be valid JSON", {"field": form_field})
        if not isinstance(data, dict):
            raise ValidationError(f"{form_field} must be a JSON object", {"field": form_field})
        return data, request.files.get(file_field)

    return read_json_body(), None


def query_int(name: str, default: int) -> int:
    value = request.args.get(name, type=int)
    return default if value is None else value


def list_filters() -> dict:
    return {
        "status": request.args.get("status") or None,
        "search": request.args.get("search") or None,
        "start_date": request.args.get("start_date") or None,
        "end_date": request.args.get("end_date") or None,
        "page": query_int("page", 1),
        "per_page": query_int("limit", 20),
        "newest_first": request.args.get("sort", "desc").lower() != "asc",
    }


def read_json_body() -> dict:
    """
    JSON object body of the request; an empty body reads as {}.

    Raises:
        ValidationError: body present but not a JSON object
    """
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data(cache=True):
            raise ValidationError("Request body must be a JSON object")
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
