# payleave_api/common/http.py
from datetime import date, datetime

from flask import jsonify

def ok(data=None, status=200, **meta):
    payload = {"success": True, "data": data}
    if meta:
        payload["meta"] = meta
    return jsonify(payload), status

def fail(message="Bad Request", status=400, code=None, detail=None, errors=None):
    err = {"message": message}
    if code: err["code"] = code
    if detail: err["detail"] = detail
    if errors: err["errors"] = errors
    return jsonify({"success": False, "error": err}), status

def parse_date(s, field="date"):
    """Parse 'YYYY-MM-DD' (or 'DD-MM-YYYY'); raise ValidationError when malformed."""
    from payleave_api.common.errors import ValidationError

    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    if not s:
        raise ValidationError(f"{field} is required")
    for fmt in ("%Y-%m-%d", "%d-%m-%Y"):
        try:
            return datetime.strptime(str(s).strip(), fmt).date()
        except ValueError:
            pass
    raise ValidationError(f"{field} is not a valid date: {s!r}")

def csv_arg(raw):
    if not raw:
        return None
    if isinstance(raw, (list, tuple)):
        return [str(x).strip() for x in raw if str(x).strip()]
    return [p.strip() for p in str(raw).split(",") if p.strip()]
